"""Debounced, per-path serialized refresh scheduling."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, TypeVar

from blame_hue.config import DEFAULT_DEBOUNCE_MS

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RefreshScheduler(Generic[T]):
    """Collapse bursts of refresh requests and never overlap one key.

    ``trigger`` restarts a single debounce timer. When it fires, only the
    latest target is refreshed. A target whose key is already refreshing is
    queued and replaces any earlier queued target for that key.
    """

    def __init__(
        self,
        refresh: Callable[[T], Awaitable[object]],
        *,
        delay_seconds: float = DEFAULT_DEBOUNCE_MS / 1000,
        key: Callable[[T], Hashable] | None = None,
    ) -> None:
        self._refresh = refresh
        self._delay_seconds = delay_seconds
        self._key = key or (lambda target: target)
        self._timer: asyncio.TimerHandle | None = None
        self._latest: T | None = None
        self._running: dict[Hashable, asyncio.Task[None]] = {}
        self._queued: dict[Hashable, T] = {}

    @property
    def pending(self) -> bool:
        return self._timer is not None or bool(self._running)

    def trigger(self, target: T) -> None:
        """Schedule a refresh of ``target`` after the quiet period."""
        self._latest = target
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._delay_seconds, self._fire)

    def submit(self, target: T) -> None:
        """Refresh ``target`` now, or right after the in-flight refresh for its key."""
        key = self._key(target)
        if key in self._running:
            self._queued[key] = target
            return
        loop = asyncio.get_running_loop()
        self._running[key] = loop.create_task(self._drain(key, target))

    async def wait_idle(self) -> None:
        while self.pending:
            if self._running:
                await asyncio.gather(*self._running.values())
            else:
                await asyncio.sleep(self._delay_seconds / 4 or 0.001)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._latest = None
        self._queued.clear()
        for task in self._running.values():
            task.cancel()

    def _fire(self) -> None:
        self._timer = None
        target = self._latest
        self._latest = None
        if target is not None:
            self.submit(target)

    async def _drain(self, key: Hashable, target: T) -> None:
        try:
            current: T | None = target
            while current is not None:
                try:
                    await self._refresh(current)
                except Exception:
                    logger.exception("Refresh failed for %s", key)
                current = self._queued.pop(key, None)
        finally:
            self._running.pop(key, None)
