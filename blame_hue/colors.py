"""Danger level colors, the handle pool and per-line color resolution."""

from __future__ import annotations

import colorsys
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from blame_hue.blame_parser import LineAttribution
from blame_hue.config import DangerConfig

logger = logging.getLogger(__name__)

HUE_DEGREES = 0
LIGHTNESS_PERCENT = 50
ALPHA = 0.35

UncoloredReason = Literal[
    "missing_attribution",
    "uncommitted",
    "content_changed",
    "no_matching_rule",
]


@dataclass(frozen=True, slots=True)
class ColorHandle:
    """A reusable whole-line background style for one danger level."""

    danger_level: int
    background_color: str

    def rgb(self, background: tuple[int, int, int] = (0, 0, 0)) -> tuple[int, int, int]:
        """Return the opaque color after blending over ``background``."""
        red, green, blue = colorsys.hls_to_rgb(
            HUE_DEGREES / 360, LIGHTNESS_PERCENT / 100, self.danger_level / 100
        )
        return (
            round(red * 255 * ALPHA + background[0] * (1 - ALPHA)),
            round(green * 255 * ALPHA + background[1] * (1 - ALPHA)),
            round(blue * 255 * ALPHA + background[2] * (1 - ALPHA)),
        )


def danger_background(danger_level: int) -> str:
    """Higher danger means a more saturated red at the same transparency."""
    return f"hsla({HUE_DEGREES}, {danger_level}%, {LIGHTNESS_PERCENT}%, {ALPHA})"


def make_color_handle(danger_level: int) -> ColorHandle:
    return ColorHandle(danger_level=danger_level, background_color=danger_background(danger_level))


class ColorHandlePool:
    """One handle per danger level ever requested. It never shrinks.

    ``on_create`` is called once for every new handle, so a host can register
    the style before it is used.
    """

    def __init__(
        self,
        factory: Callable[[int], ColorHandle] = make_color_handle,
        on_create: Callable[[ColorHandle], None] | None = None,
    ) -> None:
        self._factory = factory
        self._on_create = on_create
        self._handles: dict[int, ColorHandle] = {}

    def get(self, danger_level: int) -> ColorHandle:
        handle = self._handles.get(danger_level)
        if handle is not None:
            return handle

        handle = self._factory(danger_level)
        self._handles[danger_level] = handle
        logger.debug("Created color handle for danger level %d", danger_level)
        if self._on_create is not None:
            self._on_create(handle)
        return handle

    def handles(self) -> list[ColorHandle]:
        """All pooled handles, in creation order."""
        return list(self._handles.values())

    def __contains__(self, danger_level: object) -> bool:
        return danger_level in self._handles

    def __len__(self) -> int:
        return len(self._handles)


@dataclass(frozen=True, slots=True)
class Colored:
    """The line gets painted with ``handle``."""

    handle: ColorHandle


@dataclass(frozen=True, slots=True)
class Uncolored:
    """The line stays unpainted, and why."""

    reason: UncoloredReason


LineColor = Colored | Uncolored


class ColorResolver:
    """Map a line's attribution to a pooled color handle.

    Author lookups are memoized per email, including misses. The memo is
    dropped whenever the danger config is rebuilt.
    """

    def __init__(self, config: DangerConfig, pool: ColorHandlePool) -> None:
        self._config = config
        self._pool = pool
        self._memo: dict[str, ColorHandle | None] = {}
        self._memo_generation = config.generation

    def resolve(
        self, attribution: LineAttribution | None, current_line_text: str | None
    ) -> LineColor:
        if attribution is None:
            return Uncolored("missing_attribution")
        if attribution.is_uncommitted:
            return Uncolored("uncommitted")

        # Exact match only; any edit since the commit makes blame stale for this line.
        if current_line_text is None or current_line_text.strip() != attribution.line_content:
            return Uncolored("content_changed")

        handle = self._author_handle(attribution.email)
        if handle is None:
            return Uncolored("no_matching_rule")
        return Colored(handle)

    def resolve_line_color(
        self, attribution: LineAttribution | None, current_line_text: str | None
    ) -> ColorHandle | None:
        outcome = self.resolve(attribution, current_line_text)
        if isinstance(outcome, Colored):
            return outcome.handle
        return None

    def clear_memo(self) -> None:
        self._memo.clear()
        self._memo_generation = self._config.generation

    def _author_handle(self, email: str) -> ColorHandle | None:
        if self._memo_generation != self._config.generation:
            self.clear_memo()

        if email in self._memo:
            return self._memo[email]

        rule = self._config.find_rule(email)
        if rule is None:
            self._memo[email] = None
            return None

        handle = self._pool.get(rule.danger_level)
        self._memo[email] = handle
        return handle
