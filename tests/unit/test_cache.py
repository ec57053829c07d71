"""
Unit tests for the in-memory cache client.

Tests cover:
- Lazy region creation and stale reads
- Prefix matching for invalidate/refetch/remove
- Idempotent invalidation
- Full resync of active regions
- Stale cleanup and trimming
"""

from unittest.mock import AsyncMock

import pytest

from sdk.cachesync_sdk.cache import CacheClient, InMemoryCacheClient, key_matches


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    """Create a fresh cache."""
    return InMemoryCacheClient(clock=clock)


def loader(value):
    return AsyncMock(return_value=value)


class TestKeyMatching:
    def test_prefix(self):
        assert key_matches(("appointments",), ("appointments", "a1"))
        assert key_matches(("appointments",), ("appointments",))
        assert not key_matches(("appointments", "a1"), ("appointments",))
        assert not key_matches(("auth",), ("appointments",))


class TestInMemoryCacheClient:
    """Tests for InMemoryCacheClient."""

    def test_implements_protocol(self, cache):
        assert isinstance(cache, CacheClient)

    @pytest.mark.asyncio
    async def test_read_creates_region_lazily(self, cache):
        load = loader(["c1"])
        assert ("clients",) not in cache

        assert await cache.read(("clients",), load) == ["c1"]
        assert await cache.read(("clients",), load) == ["c1"]

        assert ("clients",) in cache
        load.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_invalidate_forces_next_read(self, cache):
        load = loader(["c1"])
        await cache.read(("clients",), load)

        await cache.invalidate(("clients",))
        assert cache.get(("clients",)).stale is True
        await cache.read(("clients",), load)

        assert load.await_count == 2

    @pytest.mark.asyncio
    async def test_invalidate_twice_equals_once(self, cache):
        load = loader(["c1"])
        await cache.read(("clients",), load)

        await cache.invalidate(("clients",))
        await cache.invalidate(("clients",))
        await cache.read(("clients",), load)
        await cache.read(("clients",), load)

        assert load.await_count == 2
        assert cache.get(("clients",)).fetch_count == 2

    @pytest.mark.asyncio
    async def test_invalidate_matches_parameterized_regions(self, cache):
        await cache.read(("appointments",), loader([]))
        await cache.read(("appointments", "a1"), loader({}))
        await cache.read(("clients",), loader([]))

        await cache.invalidate(("appointments",))

        assert cache.get(("appointments",)).stale
        assert cache.get(("appointments", "a1")).stale
        assert not cache.get(("clients",)).stale

    @pytest.mark.asyncio
    async def test_invalidate_unknown_region_is_noop(self, cache):
        await cache.invalidate(("nothing",))
        await cache.refetch(("nothing",))
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_refetch_reloads_now(self, cache, clock):
        load = loader(["c1"])
        await cache.read(("clients",), load)
        clock.now += 5

        await cache.refetch(("clients",))

        assert load.await_count == 2
        assert cache.get(("clients",)).updated_at == clock.now

    @pytest.mark.asyncio
    async def test_refetch_attempts_all_then_raises(self, cache):
        good = loader([])
        await cache.read(("appointments", "a1"), loader({}))
        await cache.read(("appointments", "a2"), good)
        cache.get(("appointments", "a1")).loader = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError, match="boom"):
            await cache.refetch(("appointments",))

        assert good.await_count == 2

    @pytest.mark.asyncio
    async def test_resync_all_refetches_active_only(self, cache):
        active = loader(["p"])
        idle = loader(["d"])
        await cache.read(("proposals",), active)
        await cache.read(("dashboard",), idle)
        cache.subscribe(("proposals",))

        await cache.resync_all()

        assert active.await_count == 2
        assert idle.await_count == 1
        assert cache.get(("dashboard",)).stale is True
        assert cache.get(("proposals",)).stale is False

    @pytest.mark.asyncio
    async def test_subscribe_requires_region(self, cache):
        with pytest.raises(KeyError):
            cache.subscribe(("clients",))

    @pytest.mark.asyncio
    async def test_unsubscribe_never_negative(self, cache):
        await cache.read(("clients",), loader([]))
        cache.unsubscribe(("clients",))
        cache.unsubscribe(("missing",))
        assert cache.get(("clients",)).subscribers == 0

    @pytest.mark.asyncio
    async def test_remove_and_clear(self, cache):
        await cache.read(("appointments", "a1"), loader({}))
        await cache.read(("appointments", "a2"), loader({}))
        await cache.read(("clients",), loader([]))

        assert await cache.remove(("appointments",)) == 2
        assert cache.keys() == [("clients",)]

        await cache.clear()
        assert len(cache) == 0


class TestCacheMaintenanceOps:
    """Tests for cleanup_stale and trim."""

    @pytest.mark.asyncio
    async def test_cleanup_removes_old_unobserved(self, cache, clock):
        await cache.read(("old",), loader(1))
        await cache.read(("watched",), loader(2))
        cache.subscribe(("watched",))
        clock.now += 3600
        await cache.read(("fresh",), loader(3))

        removed = await cache.cleanup_stale(1800)

        assert removed == 1
        assert set(cache.keys()) == {("watched",), ("fresh",)}

    @pytest.mark.asyncio
    async def test_trim_below_threshold_is_noop(self, cache):
        for i in range(3):
            await cache.read(("clients", i), loader(i))
        assert await cache.trim(max_regions=5, keep=2) == 0
        assert len(cache) == 3

    @pytest.mark.asyncio
    async def test_trim_keeps_most_recent_and_observed(self, cache, clock):
        for i in range(6):
            clock.now += 1
            await cache.read(("clients", i), loader(i))
        cache.subscribe(("clients", 0))

        trimmed = await cache.trim(max_regions=4, keep=2)

        # Oldest four are candidates; the observed one survives
        assert trimmed == 3
        assert set(cache.keys()) == {("clients", 0), ("clients", 4), ("clients", 5)}
