"""Activation-scoped state: caches, settings and per-view coloring state."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from blame_hue.attribution import AttributionCache, HeadTracker
from blame_hue.colors import ColorHandlePool, ColorResolver
from blame_hue.config import DangerConfig, HueSettings, persist_toggle
from blame_hue.engine import (
    DecorationDirective,
    DecorationSink,
    LineDecision,
    apply_directives,
    build_directives,
    compute_decorations,
    explain_lines,
    hide_directives,
    split_document_lines,
)

logger = logging.getLogger(__name__)

ViewState = Literal["uncolored", "colored"]


class HueSession:
    """Owns every cache for one activation of the colorizer.

    Views move from ``uncolored`` to ``colored`` on refresh while coloring is
    enabled and back on hide. A refresh of a colored view always recomputes
    from scratch.
    """

    def __init__(
        self,
        settings: HueSettings | None = None,
        *,
        head_tracker: HeadTracker | None = None,
        attribution_cache: AttributionCache | None = None,
        pool: ColorHandlePool | None = None,
    ) -> None:
        if attribution_cache is None:
            attribution_cache = AttributionCache(head_tracker)
        self.attribution_cache = attribution_cache
        self.pool = pool if pool is not None else ColorHandlePool()
        self.danger_config = DangerConfig()
        self.resolver = ColorResolver(self.danger_config, self.pool)
        self.show_danger_colors = True
        self._views: dict[str, ViewState] = {}
        self.apply_settings(settings or HueSettings())

    def apply_settings(self, settings: HueSettings) -> None:
        self.show_danger_colors = settings.show_danger_colors
        self.danger_config.rebuild(settings.authors_danger_config)

    def reset(self) -> None:
        """Drop cached attribution, memoized colors and view state.

        Pooled handles survive so a host still holding their ranges can clear them.
        """
        self.attribution_cache.clear()
        self.resolver.clear_memo()
        self._views.clear()

    def view_state(self, file_path: Path) -> ViewState:
        return self._views.get(_view_key(file_path), "uncolored")

    async def refresh(
        self, file_path: Path, text: str, sink: DecorationSink
    ) -> list[DecorationDirective]:
        """Recompute and emit decorations for one document view."""
        if not self.show_danger_colors:
            return self.hide_all(file_path, sink)

        attributions = await self.attribution_cache.get_attribution(file_path)
        buckets = compute_decorations(
            str(file_path), attributions, split_document_lines(text), self.resolver
        )
        directives = build_directives(buckets, self.pool)
        apply_directives(directives, sink)
        self._views[_view_key(file_path)] = "colored"
        return directives

    async def explain(self, file_path: Path, text: str) -> list[LineDecision]:
        attributions = await self.attribution_cache.get_attribution(file_path)
        return explain_lines(attributions, split_document_lines(text), self.resolver)

    def hide_all(self, file_path: Path, sink: DecorationSink) -> list[DecorationDirective]:
        directives = hide_directives(self.pool)
        apply_directives(directives, sink)
        self._views[_view_key(file_path)] = "uncolored"
        return directives

    async def toggle(
        self,
        repo: Path,
        file_path: Path | None = None,
        text: str | None = None,
        sink: DecorationSink | None = None,
    ) -> bool:
        """Flip coloring on or off, persist it and redraw the given view.

        Turning off clears every pooled handle. Turning on recomputes the view
        when its text is supplied.
        """
        enabled = not self.show_danger_colors
        state_path = persist_toggle(repo, enabled)
        self.show_danger_colors = enabled
        logger.debug("Persisted show_danger_colors=%s to %s", enabled, state_path)

        if file_path is not None and sink is not None:
            if not enabled:
                self.hide_all(file_path, sink)
            elif text is not None:
                await self.refresh(file_path, text, sink)
        return enabled


def _view_key(file_path: Path) -> str:
    return str(file_path.resolve())
