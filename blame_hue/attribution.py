"""HEAD tracking and the per-file attribution cache."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from blame_hue.blame_parser import LineAttribution
from blame_hue.git import get_current_head, get_file_attribution

logger = logging.getLogger(__name__)

HeadResolver = Callable[[Path], Awaitable[str]]
AttributionSource = Callable[[Path], Awaitable[list[LineAttribution]]]


class HeadTracker:
    """Resolve the current revision pointer for a file's repository.

    This is a plain query with no caching. Comparing against the previous
    value is up to the caller.
    """

    def __init__(self, resolver: HeadResolver = get_current_head) -> None:
        self._resolver = resolver

    async def current_head(self, file_path: Path) -> str:
        return await self._resolver(file_path)


class AttributionCache:
    """Parsed blame per file, all taken at the same HEAD.

    HEAD is shared across the repository, so a HEAD change clears every
    cached file and not just the one being requested.
    """

    def __init__(
        self,
        head_tracker: HeadTracker | None = None,
        source: AttributionSource = get_file_attribution,
    ) -> None:
        self._head_tracker = head_tracker or HeadTracker()
        self._source = source
        self._entries: dict[str, list[LineAttribution]] = {}
        self.last_known_head = ""

    async def get_attribution(self, file_path: Path) -> list[LineAttribution]:
        """Return attribution for a file, re-querying blame after a HEAD change."""
        current_head = await self._head_tracker.current_head(file_path)
        if current_head != self.last_known_head:
            if self._entries:
                logger.debug(
                    "HEAD moved from %r to %r; dropping %d cached files",
                    self.last_known_head,
                    current_head,
                    len(self._entries),
                )
            self._entries.clear()
            self.last_known_head = current_head

        key = _cache_key(file_path)
        cached = self._entries.get(key)
        if cached is not None:
            return cached

        attributions = await self._source(file_path)
        self._entries[key] = attributions
        logger.debug("Cached attribution for %s: %d lines", key, len(attributions))
        return attributions

    def clear(self) -> None:
        self._entries.clear()
        self.last_known_head = ""

    def __contains__(self, file_path: object) -> bool:
        if not isinstance(file_path, Path):
            return False
        return _cache_key(file_path) in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _cache_key(file_path: Path) -> str:
    return str(file_path.resolve())
