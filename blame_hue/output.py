"""Output rendering."""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

import click

from blame_hue import __version__
from blame_hue.colors import ColorHandle, Colored
from blame_hue.engine import DecorationDirective, LineDecision


def render_human(text: str, directives: Sequence[DecorationDirective]) -> str:
    """Render the document with danger-colored line backgrounds."""
    painted = _painted_lines(directives)
    raw_lines = text.split("\n")
    if raw_lines and raw_lines[-1] == "":
        raw_lines.pop()

    width = len(str(len(raw_lines)))
    lines: list[str] = []
    for index, raw_line in enumerate(raw_lines):
        handle = painted.get(index)
        gutter = f"{index + 1:>{width}} "
        if handle is None:
            lines.append(f"{gutter}{'':>3} | {raw_line}")
            continue
        lines.append(
            f"{gutter}{handle.danger_level:>3} | "
            + click.style(raw_line or " ", bg=handle.rgb(), fg="white")
        )
    return "\n".join(lines)


def render_explain(decisions: Sequence[LineDecision]) -> str:
    lines = [click.style("Line decisions:", bold=True)]
    for decision in decisions:
        if isinstance(decision.outcome, Colored):
            level = decision.outcome.handle.danger_level
            status = click.style(f"colored (level {level})", fg="red")
        else:
            status = f"uncolored ({decision.outcome.reason})"
        lines.append(f"{decision.line_index + 1}: <{decision.email}> {status}")
    return "\n".join(lines)


def render_json(
    directives: Sequence[DecorationDirective],
    *,
    file_path: str,
    head: str,
    show_danger_colors: bool,
) -> str:
    """Render stable JSON output for automation."""
    payload = build_json_payload(
        directives,
        file_path=file_path,
        head=head,
        show_danger_colors=show_danger_colors,
    )
    return json.dumps(payload, sort_keys=True)


def build_json_payload(
    directives: Sequence[DecorationDirective],
    *,
    file_path: str,
    head: str,
    show_danger_colors: bool,
) -> dict[str, Any]:
    return {
        "file": file_path,
        "directives": [_serialize_directive(item) for item in directives],
        "meta": {
            "generated_at": datetime.now(tz=UTC)
            .replace(microsecond=0)
            .isoformat()
            .replace("+00:00", "Z"),
            "head": head,
            "show_danger_colors": show_danger_colors,
            "version": __version__,
        },
    }


def serialize_decision(decision: LineDecision) -> dict[str, Any]:
    outcome = decision.outcome
    if isinstance(outcome, Colored):
        return {
            "line_index": decision.line_index,
            "email": decision.email,
            "colored": True,
            "danger_level": outcome.handle.danger_level,
            "reason": None,
        }
    return {
        "line_index": decision.line_index,
        "email": decision.email,
        "colored": False,
        "danger_level": None,
        "reason": outcome.reason,
    }


def _serialize_directive(directive: DecorationDirective) -> dict[str, Any]:
    return {
        "danger_level": directive.handle.danger_level,
        "background_color": directive.handle.background_color,
        "line_indexes": list(directive.line_indexes),
    }


def _painted_lines(directives: Sequence[DecorationDirective]) -> dict[int, ColorHandle]:
    painted: dict[int, ColorHandle] = {}
    for directive in directives:
        for line_index in directive.line_indexes:
            painted[line_index] = directive.handle
    return painted
