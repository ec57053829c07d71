"""
Entity-to-region invalidation graph.

Maps each entity kind to every cache region whose contents derive from it,
directly or through a join/aggregate. This table is the single place that
answers "what must be refreshed when X changes".

Invariants:
    - Edges are fixed at construction and never mutated
    - regions_for() is deterministic
    - Unknown kinds resolve to the empty set unless the graph is strict

How to change safely:
    - A new aggregate view reading kinds A, B and C must be added to the
      edge set of each of A, B and C
    - A new EntityKind needs an entry here; missing_kinds() reports gaps
    - Run with CACHESYNC_STRICT_KINDS=true in development to surface gaps
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from types import MappingProxyType

from .errors import UnknownEntityKindError
from .models import EntityKind, RegionKey, region

logger = logging.getLogger(__name__)

CLIENTS = region("clients")
PRODUCTS = region("products")
SALESPEOPLE = region("salespeople")
PROPOSALS = region("proposals")
APPOINTMENTS = region("appointments")
CATEGORIES = region("categories")
SEGMENTS = region("segments")
FILES = region("files")
ACTIVITIES = region("activities")
DASHBOARD = region("dashboard")

DEFAULT_EDGES: Mapping[EntityKind, tuple[RegionKey, ...]] = {
    EntityKind.CLIENT: (CLIENTS, DASHBOARD, ACTIVITIES, PROPOSALS, APPOINTMENTS),
    EntityKind.PRODUCT: (PRODUCTS, DASHBOARD, CATEGORIES, SEGMENTS),
    EntityKind.SALESPERSON: (SALESPEOPLE, DASHBOARD, CLIENTS, PROPOSALS, APPOINTMENTS),
    EntityKind.PROPOSAL: (PROPOSALS, DASHBOARD, CLIENTS, ACTIVITIES),
    EntityKind.APPOINTMENT: (APPOINTMENTS, DASHBOARD, CLIENTS, ACTIVITIES),
    EntityKind.CATEGORY: (CATEGORIES, PRODUCTS, DASHBOARD),
    EntityKind.SEGMENT: (SEGMENTS, PRODUCTS, DASHBOARD),
    EntityKind.FILE: (FILES, PRODUCTS, CLIENTS),
    EntityKind.ACTIVITY: (ACTIVITIES, DASHBOARD),
}


class InvalidationGraph:
    """Static resolver from entity kind to dependent cache regions.

    Example:
        >>> graph = InvalidationGraph()
        >>> ("dashboard",) in graph.regions_for("appointment")
        True
        >>> graph.regions_for("unheard_of")
        frozenset()
    """

    def __init__(
        self,
        edges: Mapping[EntityKind, tuple[RegionKey, ...]] | None = None,
        *,
        strict: bool = False,
    ) -> None:
        """Initialize the graph.

        Args:
            edges: Edge table (defaults to DEFAULT_EDGES)
            strict: Raise on unknown kinds instead of resolving to nothing
        """
        source = DEFAULT_EDGES if edges is None else edges
        self._edges = MappingProxyType(
            {kind: frozenset(regions) for kind, regions in source.items()}
        )
        self._strict = strict

    @property
    def strict(self) -> bool:
        return self._strict

    def regions_for(self, kind: EntityKind | str) -> frozenset[RegionKey]:
        """Get every region that must be invalidated when `kind` changes.

        Args:
            kind: EntityKind or its string value

        Returns:
            Frozen set of region keys (empty for unknown kinds)

        Raises:
            UnknownEntityKindError: If strict and the kind has no edge set
        """
        parsed = EntityKind.parse(kind)
        regions = self._edges.get(parsed) if parsed is not None else None
        if regions is not None:
            return regions

        name = kind.value if isinstance(kind, EntityKind) else str(kind)
        if self._strict:
            raise UnknownEntityKindError(name)
        logger.warning(f"No invalidation edges for entity kind '{name}'")
        return frozenset()

    def kinds_reading(self, key: RegionKey) -> frozenset[EntityKind]:
        """Reverse lookup: kinds whose mutation invalidates `key`."""
        return frozenset(kind for kind, regions in self._edges.items() if key in regions)

    def all_regions(self) -> frozenset[RegionKey]:
        """Every region referenced by any edge."""
        return frozenset(r for regions in self._edges.values() for r in regions)

    def missing_kinds(self) -> list[EntityKind]:
        """EntityKind members that have no edge set."""
        return [kind for kind in EntityKind if kind not in self._edges]

    def __iter__(self) -> Iterator[EntityKind]:
        yield from self._edges.keys()

    def to_dict(self) -> dict[str, list[list]]:
        """Convert to a review-friendly dictionary."""
        return {
            kind.value: sorted(list(r) for r in self._edges[kind])
            for kind in sorted(self._edges, key=lambda k: k.value)
        }
