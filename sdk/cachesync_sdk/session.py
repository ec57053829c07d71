"""
Application session wiring.

A SyncSession owns every cachesync component for one signed-in application
session:
- Cache client (in-memory unless one is supplied)
- Invalidation graph and refresh coordinator
- Visibility controller bound to the host environment
- Background cache maintenance

Usage:
    >>> async with SyncSession(host, navigation) as session:
    ...     await session.coordinator.after_mutation("client", "create")

Invariants:
    - One visibility controller per session; disposed when the session stops
    - stop() releases the host registration even if maintenance fails to stop
    - Configuration is read from the environment unless passed explicitly
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import json_log_formatter

from .cache import CacheClient, InMemoryCacheClient
from .config import SyncConfig
from .coordinator import RefreshCoordinator
from .graph import InvalidationGraph
from .maintenance import CacheMaintenance
from .policy import AuthorizationPolicy, get_policy
from .visibility import HostEnvironment, NavigationContext, VisibilityController

logger = logging.getLogger(__name__)


def setup_logging(config: SyncConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: cachesync configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from asyncio debug output
    logging.getLogger("asyncio").setLevel(logging.WARNING)


class SyncSession:
    """Owns the cache-coherence components of one application session.

    Attributes:
        config: Effective configuration
        cache: Cache client
        graph: Invalidation graph
        coordinator: Refresh coordinator
        controller: Visibility controller
        policy: Authorization policy
    """

    def __init__(
        self,
        host: HostEnvironment,
        navigation: NavigationContext,
        *,
        cache: Optional[CacheClient] = None,
        config: Optional[SyncConfig] = None,
        policy: Optional[AuthorizationPolicy] = None,
    ) -> None:
        """Initialize the session.

        Args:
            host: Visibility signal source
            navigation: Current-location source
            cache: Cache client (defaults to a new InMemoryCacheClient)
            config: Configuration (loaded from env if not provided)
            policy: Authorization policy (defaults to get_policy())
        """
        self.config = config or SyncConfig.from_env()
        self.cache: CacheClient = cache if cache is not None else InMemoryCacheClient()
        self.graph = InvalidationGraph(strict=self.config.graph.strict_kinds)
        self.coordinator = RefreshCoordinator(self.cache, self.graph)
        self.controller = VisibilityController(
            host,
            navigation,
            self.coordinator.full_resync,
            self.config.visibility,
        )
        self.policy = policy or get_policy()

        # Maintenance only applies to caches that support cleanup and trim
        self.maintenance: CacheMaintenance | None = None
        if self.config.cache.maintenance_enabled and isinstance(self.cache, InMemoryCacheClient):
            self.maintenance = CacheMaintenance(self.cache, self.config.cache)

        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Register with the host and start background maintenance."""
        if self._running:
            return

        missing = self.graph.missing_kinds()
        if missing:
            logger.warning(
                "Entity kinds without invalidation edges",
                extra={"kinds": [k.value for k in missing]},
            )

        self.config.log_config()
        self.controller.start()
        if self.maintenance:
            await self.maintenance.start()
        self._running = True
        logger.info("SyncSession started")

    async def stop(self) -> None:
        """Release the host registration and stop maintenance."""
        if not self._running:
            return
        self._running = False
        try:
            if self.maintenance:
                await self.maintenance.stop()
        finally:
            self.controller.dispose()
        await self.controller.wait_idle()
        logger.info("SyncSession stopped")

    async def sign_out(self) -> None:
        """Drop all cached data, then stop the session."""
        await self.coordinator.clear_all()
        await self.stop()

    async def __aenter__(self) -> SyncSession:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()
