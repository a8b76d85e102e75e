"""Decoration computation: group colorable lines by handle."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from blame_hue.blame_parser import LineAttribution
from blame_hue.colors import ColorHandle, ColorHandlePool, ColorResolver, LineColor

logger = logging.getLogger(__name__)

CurrentLines = Sequence[str] | Mapping[int, str]


@dataclass(frozen=True, slots=True)
class DecorationDirective:
    """Set the ranges painted with ``handle``. Empty indexes clear it."""

    handle: ColorHandle
    line_indexes: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class LineDecision:
    """Resolution outcome for a single attributed line."""

    line_index: int
    email: str
    outcome: LineColor


class DecorationSink(Protocol):
    """Host rendering boundary."""

    def set_decorations(self, handle: ColorHandle, line_indexes: tuple[int, ...]) -> None:
        """Paint ``line_indexes`` with ``handle``, replacing any previous ranges."""


@dataclass(slots=True)
class CollectingSink:
    """Sink that records the latest ranges per handle."""

    ranges: dict[ColorHandle, tuple[int, ...]] = field(default_factory=dict)
    calls: list[DecorationDirective] = field(default_factory=list)

    def set_decorations(self, handle: ColorHandle, line_indexes: tuple[int, ...]) -> None:
        self.ranges[handle] = line_indexes
        self.calls.append(DecorationDirective(handle=handle, line_indexes=line_indexes))


def split_document_lines(text: str) -> list[str]:
    """Split document text into stripped lines, indexed from 0."""
    return [line.strip() for line in text.split("\n")]


def compute_decorations(
    file_path: str,
    attributions: Sequence[LineAttribution | None],
    current_lines: CurrentLines,
    resolver: ColorResolver,
) -> dict[ColorHandle, list[int]]:
    """Group unmodified, rule-matched lines by their color handle."""
    buckets: dict[ColorHandle, list[int]] = {}
    for attribution in attributions:
        if attribution is None:
            continue
        handle = resolver.resolve_line_color(
            attribution, _line_text(current_lines, attribution.line_index)
        )
        if handle is None:
            continue
        buckets.setdefault(handle, []).append(attribution.line_index)

    logger.debug(
        "%s: %d colored lines across %d handles",
        file_path,
        sum(len(indexes) for indexes in buckets.values()),
        len(buckets),
    )
    return buckets


def explain_lines(
    attributions: Sequence[LineAttribution | None],
    current_lines: CurrentLines,
    resolver: ColorResolver,
) -> list[LineDecision]:
    decisions: list[LineDecision] = []
    for attribution in attributions:
        if attribution is None:
            continue
        decisions.append(
            LineDecision(
                line_index=attribution.line_index,
                email=attribution.email,
                outcome=resolver.resolve(
                    attribution, _line_text(current_lines, attribution.line_index)
                ),
            )
        )
    return decisions


def build_directives(
    buckets: Mapping[ColorHandle, Sequence[int]], pool: ColorHandlePool
) -> list[DecorationDirective]:
    """One directive per pooled handle, so handles no longer in use get cleared."""
    return [
        DecorationDirective(handle=handle, line_indexes=tuple(buckets.get(handle, ())))
        for handle in pool.handles()
    ]


def hide_directives(pool: ColorHandlePool) -> list[DecorationDirective]:
    return [DecorationDirective(handle=handle, line_indexes=()) for handle in pool.handles()]


def apply_directives(directives: Sequence[DecorationDirective], sink: DecorationSink) -> None:
    for directive in directives:
        sink.set_decorations(directive.handle, directive.line_indexes)


def _line_text(current_lines: CurrentLines, line_index: int) -> str | None:
    if isinstance(current_lines, Mapping):
        return current_lines.get(line_index)
    if 0 <= line_index < len(current_lines):
        return current_lines[line_index]
    return None
