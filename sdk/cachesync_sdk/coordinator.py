"""
Post-mutation cache refresh.

After a remote write has been acknowledged, the coordinator looks up the
regions derived from the written entity kind and invalidates them.

Invariants:
    - after_mutation() is only called after the write succeeded
    - Region invalidations for one mutation run concurrently
    - A failing region is logged and never stops the others
    - Nothing here raises InvalidationFailure to the caller
    - create/delete also invalidate the identity region; update does not
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, List

from .cache import CacheClient
from .errors import InvalidationFailure
from .graph import (
    APPOINTMENTS,
    CLIENTS,
    DASHBOARD,
    PRODUCTS,
    PROPOSALS,
    SALESPEOPLE,
    InvalidationGraph,
)
from .models import IDENTITY_REGION, EntityKind, MutationOp, RegionKey

logger = logging.getLogger(__name__)

# Regions refreshed by refresh_all(): identity plus the primary listings.
CRITICAL_REGIONS: tuple[RegionKey, ...] = (
    IDENTITY_REGION,
    DASHBOARD,
    CLIENTS,
    PRODUCTS,
    SALESPEOPLE,
    PROPOSALS,
    APPOINTMENTS,
)


@dataclass
class RefreshReport:
    """What a refresh call requested and what failed.

    Attributes:
        requested: Region keys that were invalidated or refetched
        failed: Subset whose call raised
    """

    requested: List[RegionKey] = field(default_factory=list)
    failed: List[RegionKey] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class RefreshCoordinator:
    """Issues cache invalidations in response to successful writes.

    Example:
        >>> coordinator = RefreshCoordinator(cache, InvalidationGraph())
        >>> await coordinator.after_mutation("appointment", "create")
    """

    def __init__(self, cache: CacheClient, graph: InvalidationGraph | None = None) -> None:
        """Initialize the coordinator.

        Args:
            cache: Cache client to invalidate through
            graph: Entity-to-region graph (defaults to the built-in table)
        """
        self._cache = cache
        self._graph = graph or InvalidationGraph()

    @property
    def graph(self) -> InvalidationGraph:
        return self._graph

    async def after_mutation(
        self,
        kind: EntityKind | str,
        operation: MutationOp | str,
    ) -> RefreshReport:
        """Invalidate every region derived from `kind`.

        Args:
            kind: Entity kind that was written
            operation: create, update or delete

        Returns:
            RefreshReport; completion means the requests were issued, not
            that the UI has repainted

        Raises:
            ValueError: If operation is not a known MutationOp
            UnknownEntityKindError: If the graph is strict and kind is unknown
        """
        op = MutationOp(operation)
        keys = list(self._graph.regions_for(kind))
        if op.touches_identity and IDENTITY_REGION not in keys:
            keys.append(IDENTITY_REGION)

        report = await self._fan_out(keys, "invalidate")
        logger.info(
            "Refreshed after mutation",
            extra={
                "kind": kind.value if isinstance(kind, EntityKind) else kind,
                "operation": op.value,
                "regions": len(report.requested),
                "failed": len(report.failed),
            },
        )
        return report

    async def force_refresh(self, regions: Iterable[RegionKey]) -> RefreshReport:
        """Refetch the given regions directly, bypassing the graph."""
        return await self._fan_out(list(regions), "refetch")

    async def refresh_all(self) -> RefreshReport:
        """Invalidate the critical region set."""
        return await self._fan_out(list(CRITICAL_REGIONS), "invalidate")

    async def full_resync(self) -> bool:
        """Re-run every active region from the authoritative source.

        Returns:
            True if the cache reported success
        """
        try:
            await self._cache.resync_all()
        except Exception as e:
            logger.warning(f"Full resync failed: {e}")
            return False
        return True

    async def clear_all(self) -> None:
        """Drop every cached region (sign-out)."""
        await self._cache.clear()
        logger.info("Cleared all cached regions")

    async def _fan_out(self, keys: List[RegionKey], action: str) -> RefreshReport:
        """Run `action` on every key concurrently, collecting failures."""
        call = self._cache.invalidate if action == "invalidate" else self._cache.refetch
        results = await asyncio.gather(*(call(k) for k in keys), return_exceptions=True)

        report = RefreshReport(requested=keys)
        for key, result in zip(keys, results):
            if isinstance(result, Exception):
                failure = InvalidationFailure(
                    f"Failed to {action} region {key}: {result}", key, action
                )
                logger.warning(failure.message, extra=failure.details)
                report.failed.append(key)
        return report
