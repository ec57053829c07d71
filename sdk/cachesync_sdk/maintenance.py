"""
Background cache maintenance.

Periodically removes unobserved regions that have not been refreshed for a
while and caps the region table, so long-lived sessions do not accumulate
every filter combination ever viewed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .cache import InMemoryCacheClient
from .config import CacheConfig

logger = logging.getLogger(__name__)


class CacheMaintenance:
    """Runs cleanup_stale() and trim() on an interval.

    run_once() can also be called directly; wake() triggers an early pass.
    """

    def __init__(self, cache: InMemoryCacheClient, config: Optional[CacheConfig] = None) -> None:
        self._cache = cache
        self._config = config or CacheConfig()
        self._running = False
        self._task: asyncio.Task | None = None
        self._wake_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background maintenance loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("CacheMaintenance started")

    async def stop(self) -> None:
        """Stop the loop. No final pass is run."""
        if not self._running:
            return
        self._running = False
        self._wake_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("CacheMaintenance stopped")

    def wake(self) -> None:
        """Run a pass as soon as possible."""
        self._wake_event.set()

    async def _loop(self) -> None:
        try:
            while self._running:
                try:
                    await asyncio.wait_for(
                        self._wake_event.wait(),
                        timeout=self._config.cleanup_interval_seconds,
                    )
                except asyncio.TimeoutError:
                    pass

                self._wake_event.clear()
                if self._running:
                    await self.run_once()
        except asyncio.CancelledError:
            pass

    async def run_once(self) -> tuple[int, int]:
        """Run one cleanup pass.

        Returns:
            (stale regions removed, regions trimmed)
        """
        try:
            removed = await self._cache.cleanup_stale(self._config.stale_after_seconds)
            trimmed = await self._cache.trim(self._config.max_regions, self._config.keep_regions)
        except Exception as e:
            logger.warning(f"Cache maintenance pass failed: {e}")
            return 0, 0

        if removed or trimmed:
            logger.debug(f"Cache maintenance removed {removed} stale, trimmed {trimmed}")
        return removed, trimmed
