"""Tests for output rendering."""

from __future__ import annotations

import json

import click

from blame_hue.colors import Colored, ColorHandlePool, Uncolored
from blame_hue.engine import DecorationDirective, LineDecision
from blame_hue.output import render_explain, render_human, render_json


def test_render_human_marks_colored_lines_with_level() -> None:
    pool = ColorHandlePool()
    directives = [
        DecorationDirective(handle=pool.get(40), line_indexes=(0,)),
        DecorationDirective(handle=pool.get(90), line_indexes=()),
    ]

    rendered = render_human("first\nsecond\n", directives)

    assert click.unstyle(rendered).splitlines() == ["1  40 | first", "2     | second"]
    assert "\x1b[" in rendered


def test_render_json_is_stable() -> None:
    pool = ColorHandlePool()
    directives = [DecorationDirective(handle=pool.get(75), line_indexes=(3, 5))]

    payload = json.loads(
        render_json(directives, file_path="src/app.py", head="abc1234", show_danger_colors=True)
    )

    assert payload["file"] == "src/app.py"
    assert payload["directives"] == [
        {
            "danger_level": 75,
            "background_color": "hsla(0, 75%, 50%, 0.35)",
            "line_indexes": [3, 5],
        }
    ]
    assert payload["meta"]["head"] == "abc1234"
    assert payload["meta"]["generated_at"].endswith("Z")


def test_render_explain_lists_reasons() -> None:
    pool = ColorHandlePool()
    decisions = [
        LineDecision(line_index=0, email="a@x.com", outcome=Colored(pool.get(60))),
        LineDecision(line_index=1, email="b@x.com", outcome=Uncolored("no_matching_rule")),
    ]

    rendered = click.unstyle(render_explain(decisions))

    assert rendered.splitlines() == [
        "Line decisions:",
        "1: <a@x.com> colored (level 60)",
        "2: <b@x.com> uncolored (no_matching_rule)",
    ]
