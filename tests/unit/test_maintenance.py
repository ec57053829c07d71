"""
Unit tests for background cache maintenance.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from sdk.cachesync_sdk.cache import InMemoryCacheClient
from sdk.cachesync_sdk.config import CacheConfig
from sdk.cachesync_sdk.maintenance import CacheMaintenance


@pytest.fixture
def cache():
    cache = MagicMock(spec=InMemoryCacheClient)
    cache.cleanup_stale = AsyncMock(return_value=2)
    cache.trim = AsyncMock(return_value=1)
    return cache


class TestCacheMaintenance:
    """Tests for CacheMaintenance."""

    @pytest.mark.asyncio
    async def test_run_once_uses_config(self, cache):
        config = CacheConfig(stale_after_seconds=10, max_regions=8, keep_regions=4)
        maintenance = CacheMaintenance(cache, config)

        assert await maintenance.run_once() == (2, 1)
        cache.cleanup_stale.assert_awaited_once_with(10)
        cache.trim.assert_awaited_once_with(8, 4)

    @pytest.mark.asyncio
    async def test_run_once_swallows_errors(self, cache):
        cache.cleanup_stale = AsyncMock(side_effect=RuntimeError("boom"))
        maintenance = CacheMaintenance(cache)

        assert await maintenance.run_once() == (0, 0)

    @pytest.mark.asyncio
    async def test_wake_triggers_pass(self, cache):
        maintenance = CacheMaintenance(cache, CacheConfig(cleanup_interval_seconds=3600))
        await maintenance.start()
        assert maintenance.running

        maintenance.wake()
        for _ in range(10):
            await asyncio.sleep(0)
            if cache.trim.await_count:
                break

        await maintenance.stop()
        assert not maintenance.running
        cache.cleanup_stale.assert_awaited()

    @pytest.mark.asyncio
    async def test_interval_triggers_pass(self, cache):
        maintenance = CacheMaintenance(cache, CacheConfig(cleanup_interval_seconds=0.01))
        await maintenance.start()
        await asyncio.sleep(0.05)
        await maintenance.stop()

        assert cache.cleanup_stale.await_count >= 1

    @pytest.mark.asyncio
    async def test_start_stop_idempotent(self, cache):
        maintenance = CacheMaintenance(cache)
        await maintenance.stop()
        await maintenance.start()
        await maintenance.start()
        await maintenance.stop()
        await maintenance.stop()
        cache.cleanup_stale.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_against_real_cache(self):
        now = [0.0]
        cache = InMemoryCacheClient(clock=lambda: now[0])
        await cache.read(("clients",), AsyncMock(return_value=[]))
        now[0] = 7200.0

        removed, trimmed = await CacheMaintenance(cache).run_once()

        assert (removed, trimmed) == (1, 0)
        assert len(cache) == 0
