"""Tests for HEAD-aware attribution caching."""

from __future__ import annotations

import asyncio
from pathlib import Path

from blame_hue.attribution import AttributionCache, HeadTracker
from tests.fakes import FakeBlame, FakeHead

BLAME = {
    "a.py": "a1 (<a@x.com> 1610000000 +0000 1) first",
    "b.py": "b1 (<b@x.com> 1610000000 +0000 1) other",
}


def test_second_lookup_is_served_from_cache(tmp_path: Path) -> None:
    head = FakeHead("abc1234")
    blame = FakeBlame(dict(BLAME))
    cache = AttributionCache(HeadTracker(head), source=blame)

    async def scenario() -> None:
        first = await cache.get_attribution(tmp_path / "a.py")
        second = await cache.get_attribution(tmp_path / "a.py")
        assert second is first

    asyncio.run(scenario())
    assert blame.calls == ["a.py"]
    assert head.calls == 2
    assert cache.last_known_head == "abc1234"
    assert (tmp_path / "a.py") in cache


def test_head_change_invalidates_every_cached_file(tmp_path: Path) -> None:
    head = FakeHead("abc1234")
    blame = FakeBlame(dict(BLAME))
    cache = AttributionCache(HeadTracker(head), source=blame)

    async def scenario() -> None:
        first = await cache.get_attribution(tmp_path / "a.py")
        await cache.get_attribution(tmp_path / "b.py")
        assert len(cache) == 2

        head.value = "def5678"
        second = await cache.get_attribution(tmp_path / "a.py")
        assert second is not first
        assert second == first
        assert len(cache) == 1
        assert (tmp_path / "b.py") not in cache

    asyncio.run(scenario())
    assert blame.calls == ["a.py", "b.py", "a.py"]
    assert cache.last_known_head == "def5678"


def test_failed_head_lookup_counts_as_a_revision(tmp_path: Path) -> None:
    head = FakeHead("abc1234")
    blame = FakeBlame(dict(BLAME))
    cache = AttributionCache(HeadTracker(head), source=blame)

    async def scenario() -> None:
        await cache.get_attribution(tmp_path / "a.py")
        head.value = ""
        await cache.get_attribution(tmp_path / "a.py")
        await cache.get_attribution(tmp_path / "a.py")

    asyncio.run(scenario())
    assert blame.calls == ["a.py", "a.py"]


def test_clear_forgets_files_and_head(tmp_path: Path) -> None:
    blame = FakeBlame(dict(BLAME))
    cache = AttributionCache(HeadTracker(FakeHead()), source=blame)

    asyncio.run(cache.get_attribution(tmp_path / "a.py"))
    cache.clear()

    assert len(cache) == 0
    assert cache.last_known_head == ""
    asyncio.run(cache.get_attribution(tmp_path / "a.py"))
    assert blame.calls == ["a.py", "a.py"]
