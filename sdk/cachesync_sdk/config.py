"""
Configuration management for cachesync.

All configuration is done via environment variables. This module provides
typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Development builds should set CACHESYNC_STRICT_KINDS=true

How to change safely:
    - Add new settings with defaults that keep current behavior
    - Keep from_env() variable names prefixed with CACHESYNC_
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_LOCATIONS = ("/planos", "/app/configuracoes-ia", "/app/whatsapp")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class GraphConfig:
    """Invalidation graph configuration.

    Attributes:
        strict_kinds: Raise on entity kinds missing from the graph
    """

    strict_kinds: bool = False

    @classmethod
    def from_env(cls) -> GraphConfig:
        """Load configuration from environment variables."""
        return cls(strict_kinds=_env_bool("CACHESYNC_STRICT_KINDS", "false"))


@dataclass(frozen=True)
class VisibilityConfig:
    """Visibility controller configuration.

    Attributes:
        resync_on_focus: Whether returning to the foreground resyncs at all
        excluded_locations: Locations (substring match) where resync is skipped
    """

    resync_on_focus: bool = True
    excluded_locations: tuple[str, ...] = DEFAULT_EXCLUDED_LOCATIONS

    @classmethod
    def from_env(cls) -> VisibilityConfig:
        """Load configuration from environment variables."""
        raw = os.getenv("CACHESYNC_EXCLUDED_LOCATIONS", ",".join(DEFAULT_EXCLUDED_LOCATIONS))
        return cls(
            resync_on_focus=_env_bool("CACHESYNC_RESYNC_ON_FOCUS", "true"),
            excluded_locations=tuple(p.strip() for p in raw.split(",") if p.strip()),
        )


@dataclass(frozen=True)
class CacheConfig:
    """Cache maintenance configuration.

    Attributes:
        maintenance_enabled: Whether the cleanup loop runs
        cleanup_interval_seconds: Interval between cleanup passes
        stale_after_seconds: Age after which unobserved regions are removed
        max_regions: Region count that triggers trimming
        keep_regions: Most recent regions kept when trimming
    """

    maintenance_enabled: bool = True
    cleanup_interval_seconds: float = 15 * 60
    stale_after_seconds: float = 30 * 60
    max_regions: int = 100
    keep_regions: int = 50

    @classmethod
    def from_env(cls) -> CacheConfig:
        """Load configuration from environment variables."""
        return cls(
            maintenance_enabled=_env_bool("CACHESYNC_MAINTENANCE_ENABLED", "true"),
            cleanup_interval_seconds=float(
                os.getenv("CACHESYNC_CLEANUP_INTERVAL_SECONDS", str(15 * 60))
            ),
            stale_after_seconds=float(os.getenv("CACHESYNC_STALE_AFTER_SECONDS", str(30 * 60))),
            max_regions=int(os.getenv("CACHESYNC_MAX_REGIONS", "100")),
            keep_regions=int(os.getenv("CACHESYNC_KEEP_REGIONS", "50")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("CACHESYNC_LOG_LEVEL", "INFO"),
            log_format=os.getenv("CACHESYNC_LOG_FORMAT", "json"),
        )


@dataclass
class SyncConfig:
    """Complete cachesync configuration.

    Attributes:
        graph: Invalidation graph configuration
        visibility: Visibility controller configuration
        cache: Cache maintenance configuration
        observability: Logging configuration
    """

    graph: GraphConfig = field(default_factory=GraphConfig)
    visibility: VisibilityConfig = field(default_factory=VisibilityConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> SyncConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            graph=GraphConfig.from_env(),
            visibility=VisibilityConfig.from_env(),
            cache=CacheConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.cache.cleanup_interval_seconds <= 0:
            raise ValueError("CACHESYNC_CLEANUP_INTERVAL_SECONDS must be positive")
        if self.cache.stale_after_seconds < 0:
            raise ValueError("CACHESYNC_STALE_AFTER_SECONDS must not be negative")
        if self.cache.keep_regions > self.cache.max_regions:
            raise ValueError("CACHESYNC_KEEP_REGIONS must not exceed CACHESYNC_MAX_REGIONS")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid CACHESYNC_LOG_FORMAT '{self.observability.log_format}'. "
                "Must be one of: json, text"
            )
        if not self.graph.strict_kinds:
            logger.debug("Invalidation graph is lenient; unknown entity kinds are ignored")

    def log_config(self) -> None:
        """Log the effective configuration."""
        logger.info(
            "cachesync configuration loaded",
            extra={
                "strict_kinds": self.graph.strict_kinds,
                "resync_on_focus": self.visibility.resync_on_focus,
                "excluded_locations": list(self.visibility.excluded_locations),
                "maintenance_enabled": self.cache.maintenance_enabled,
                "cleanup_interval_seconds": self.cache.cleanup_interval_seconds,
                "max_regions": self.cache.max_regions,
                "log_level": self.observability.log_level,
            },
        )
