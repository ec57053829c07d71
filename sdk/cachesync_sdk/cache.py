"""
Cache client protocol and in-memory implementation.

This module defines the CacheClient protocol the coordinator writes
through, along with an in-memory backend for:
- Unit and integration tests
- Headless tools that want the same region semantics as the UI cache

Region semantics:
    - Regions are keyed by tuples, e.g. ("appointments",) or ("appointments", "a-1")
    - Operating on a key affects every region whose key starts with it
    - Regions are created lazily on first read
    - invalidate() only marks regions stale; the next read refetches

Invariants:
    - invalidate() and refetch() are idempotent and safe on regions without
      subscribers or on keys with no matching region
    - Writers never set cached values directly; values only come from loaders

How to change safely:
    - Protocol changes require updating all implementations
    - Keep prefix matching consistent between invalidate, refetch and remove
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, runtime_checkable

from .models import RegionKey

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]


@runtime_checkable
class CacheClient(Protocol):
    """Protocol for the local read cache.

    Example:
        >>> cache = InMemoryCacheClient()
        >>> await cache.read(("clients",), load_clients)
        >>> await cache.invalidate(("clients",))
    """

    @abstractmethod
    async def invalidate(self, key: RegionKey) -> None:
        """Mark every region under `key` stale."""
        ...

    @abstractmethod
    async def refetch(self, key: RegionKey) -> None:
        """Re-run the loader of every region under `key` now."""
        ...

    @abstractmethod
    async def resync_all(self) -> None:
        """Re-run every active region and mark the rest stale."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Drop every region."""
        ...


@dataclass
class CacheRegion:
    """One cached region.

    Attributes:
        key: Region key
        loader: Coroutine factory fetching fresh data
        data: Last fetched value
        updated_at: Time of last successful fetch (clock seconds)
        stale: Whether the next read must refetch
        subscribers: Number of active observers
        fetch_count: Number of completed fetches
    """

    key: RegionKey
    loader: Loader
    data: Any = None
    updated_at: float = 0.0
    stale: bool = True
    subscribers: int = 0
    fetch_count: int = 0


def key_matches(prefix: RegionKey, key: RegionKey) -> bool:
    """Whether `key` falls under `prefix`."""
    return key[: len(prefix)] == prefix


class InMemoryCacheClient:
    """In-memory implementation of CacheClient.

    Thread safety:
        Uses an asyncio lock around the region table. Loaders run outside
        the lock.

    Example:
        >>> cache = InMemoryCacheClient()
        >>> clients = await cache.read(("clients",), store_clients)
        >>> cache.subscribe(("clients",))
        >>> await cache.resync_all()
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """Initialize an empty cache.

        Args:
            clock: Time source in seconds
        """
        self._regions: Dict[RegionKey, CacheRegion] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def __len__(self) -> int:
        return len(self._regions)

    def __contains__(self, key: RegionKey) -> bool:
        return key in self._regions

    def get(self, key: RegionKey) -> Optional[CacheRegion]:
        """Get a region by exact key."""
        return self._regions.get(key)

    def keys(self) -> List[RegionKey]:
        return list(self._regions.keys())

    def _matching(self, prefix: RegionKey) -> List[CacheRegion]:
        return [r for k, r in self._regions.items() if key_matches(prefix, k)]

    async def read(self, key: RegionKey, loader: Loader) -> Any:
        """Read a region, creating or refreshing it as needed.

        Args:
            key: Region key
            loader: Coroutine factory used when the region is missing or stale

        Returns:
            Cached (or freshly loaded) data
        """
        async with self._lock:
            entry = self._regions.get(key)
            if entry is None:
                entry = CacheRegion(key=key, loader=loader)
                self._regions[key] = entry
                logger.debug(f"Created cache region {key}")
            else:
                entry.loader = loader

        if entry.stale:
            await self._fetch(entry)
        return entry.data

    def subscribe(self, key: RegionKey) -> None:
        """Register an observer on an existing region."""
        entry = self._regions.get(key)
        if entry is None:
            raise KeyError(f"No cache region {key}")
        entry.subscribers += 1

    def unsubscribe(self, key: RegionKey) -> None:
        """Release an observer; unknown keys are ignored."""
        entry = self._regions.get(key)
        if entry is not None and entry.subscribers > 0:
            entry.subscribers -= 1

    async def _fetch(self, entry: CacheRegion) -> None:
        entry.data = await entry.loader()
        entry.updated_at = self._clock()
        entry.stale = False
        entry.fetch_count += 1

    async def invalidate(self, key: RegionKey) -> None:
        """Mark every region under `key` stale.

        Regions that are already stale are left untouched, so repeated
        calls have no further effect.
        """
        async with self._lock:
            for entry in self._matching(key):
                if not entry.stale:
                    entry.stale = True
                    logger.debug(f"Invalidated cache region {entry.key}")

    async def refetch(self, key: RegionKey) -> None:
        """Re-run the loader of every region under `key`.

        Raises:
            Exception: The first loader failure, after all regions were attempted
        """
        async with self._lock:
            entries = self._matching(key)
        await self._fetch_all(entries)

    async def _fetch_all(self, entries: List[CacheRegion]) -> None:
        results = await asyncio.gather(
            *(self._fetch(e) for e in entries), return_exceptions=True
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            raise errors[0]

    async def resync_all(self) -> None:
        """Refetch every observed region; mark unobserved regions stale."""
        async with self._lock:
            active = [r for r in self._regions.values() if r.subscribers > 0]
            for entry in self._regions.values():
                if entry.subscribers == 0:
                    entry.stale = True
        logger.info(f"Resyncing {len(active)} active cache regions")
        await self._fetch_all(active)

    async def remove(self, key: RegionKey) -> int:
        """Drop every region under `key`. Returns the number removed."""
        async with self._lock:
            doomed = [r.key for r in self._matching(key)]
            for k in doomed:
                del self._regions[k]
        return len(doomed)

    async def clear(self) -> None:
        async with self._lock:
            self._regions.clear()
        logger.debug("Cache cleared")

    async def cleanup_stale(self, max_age_seconds: float) -> int:
        """Remove unobserved regions not fetched within `max_age_seconds`.

        Returns:
            Number of regions removed
        """
        cutoff = self._clock() - max_age_seconds
        async with self._lock:
            doomed = [
                k
                for k, r in self._regions.items()
                if r.updated_at < cutoff and r.subscribers == 0
            ]
            for k in doomed:
                del self._regions[k]
        if doomed:
            logger.debug(f"Removed {len(doomed)} stale cache regions")
        return len(doomed)

    async def trim(self, max_regions: int, keep: int) -> int:
        """Cap the region table size.

        When more than `max_regions` regions exist, the oldest ones beyond
        the `keep` most recent are removed, skipping observed regions.

        Returns:
            Number of regions removed
        """
        async with self._lock:
            if len(self._regions) <= max_regions:
                return 0
            by_age = sorted(self._regions.values(), key=lambda r: r.updated_at)
            candidates = by_age[: len(by_age) - keep]
            doomed = [r.key for r in candidates if r.subscribers == 0]
            for k in doomed:
                del self._regions[k]
        logger.debug(f"Trimmed {len(doomed)} cache regions")
        return len(doomed)
