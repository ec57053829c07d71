"""
cachesync SDK - cache coherence and record authorization for CRM clients.

This SDK sits between the UI layer and the remote record store:
- AuthorizationPolicy for role/ownership visibility and mutation checks
- InvalidationGraph mapping entity kinds to dependent cache regions
- RefreshCoordinator invalidating regions after successful writes
- VisibilityController resyncing when the app returns to the foreground

Example:
    >>> from sdk.cachesync_sdk import SyncSession, can_view
    >>>
    >>> async with SyncSession(host, navigation) as session:
    ...     visible = can_view(appointments, user)
    ...     await session.coordinator.after_mutation("appointment", "create")

Invariants:
    - Authorization never raises; it returns results
    - Cache invalidation never fails the write that triggered it
    - The entity-to-region table is the only source of refresh fan-out

Version: 1.0.0
"""

__version__ = "1.0.0"

from .cache import CacheClient, CacheRegion, InMemoryCacheClient
from .config import SyncConfig
from .coordinator import CRITICAL_REGIONS, RefreshCoordinator, RefreshReport
from .errors import (
    AccessDeniedError,
    CacheSyncError,
    DenialReason,
    InvalidationFailure,
    RecordStoreError,
    UnknownEntityKindError,
)
from .graph import DEFAULT_EDGES, InvalidationGraph
from .models import IDENTITY_REGION, EntityKind, MutationOp, Record, Role, User, region
from .policy import (
    AuthorizationPolicy,
    PolicyResult,
    can_assign_owner,
    can_modify,
    can_view,
    get_policy,
    validate_create,
    validate_delete,
    validate_update,
)
from .service import GuardedMutations, MutationResult, RecordStore
from .session import SyncSession, setup_logging
from .visibility import (
    HostEnvironment,
    NavigationContext,
    VisibilityController,
    VisibilityState,
)

__all__ = [
    # Version
    "__version__",
    # Models
    "EntityKind",
    "MutationOp",
    "Record",
    "Role",
    "User",
    "region",
    "IDENTITY_REGION",
    # Policy
    "AuthorizationPolicy",
    "PolicyResult",
    "get_policy",
    "can_view",
    "can_modify",
    "can_assign_owner",
    "validate_create",
    "validate_update",
    "validate_delete",
    # Graph and refresh
    "InvalidationGraph",
    "DEFAULT_EDGES",
    "RefreshCoordinator",
    "RefreshReport",
    "CRITICAL_REGIONS",
    # Cache
    "CacheClient",
    "CacheRegion",
    "InMemoryCacheClient",
    # Visibility
    "VisibilityController",
    "VisibilityState",
    "HostEnvironment",
    "NavigationContext",
    # Service and session
    "GuardedMutations",
    "MutationResult",
    "RecordStore",
    "SyncSession",
    "SyncConfig",
    "setup_logging",
    # Errors
    "CacheSyncError",
    "AccessDeniedError",
    "DenialReason",
    "InvalidationFailure",
    "RecordStoreError",
    "UnknownEntityKindError",
]
