"""
Error types for the cachesync SDK.

This module defines the exception types and the denial taxonomy:
- CacheSyncError: Base exception
- AccessDeniedError: Authorization denial raised on request
- InvalidationFailure: A cache region could not be invalidated/refetched
- UnknownEntityKindError: Entity kind missing from the invalidation graph
- RecordStoreError: Remote record store rejected a write

Invariants:
    - All errors inherit from CacheSyncError
    - Authorization denials are normally returned, not raised
    - InvalidationFailure never escapes the coordinator
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class DenialReason(Enum):
    """Why the authorization policy refused an action."""

    UNAUTHENTICATED = "unauthenticated"
    PERMISSION_DENIED = "permission_denied"
    OWNERSHIP_VIOLATION = "ownership_violation"
    MISSING_REQUIRED_FIELD = "missing_required_field"


class CacheSyncError(Exception):
    """Base exception for all cachesync errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "CACHESYNC_ERROR"
        self.details = details or {}


class AccessDeniedError(CacheSyncError):
    """The policy denied an action.

    Raised only by AuthorizationPolicy.check_or_raise(); the validators
    themselves return structured results.
    """

    def __init__(
        self,
        message: str,
        reason: DenialReason,
        user_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code=reason.name,
            details={"reason": reason.value, "user_id": user_id},
        )
        self.reason = reason
        self.user_id = user_id


class InvalidationFailure(CacheSyncError):
    """Invalidating or refetching a cache region failed."""

    def __init__(
        self,
        message: str,
        region: tuple,
        action: str = "invalidate",
    ) -> None:
        super().__init__(
            message,
            code="INVALIDATION_FAILURE",
            details={"region": list(region), "action": action},
        )
        self.region = region
        self.action = action


class UnknownEntityKindError(CacheSyncError):
    """Entity kind has no edge set in a strict invalidation graph."""

    def __init__(self, kind: str) -> None:
        super().__init__(
            f"No invalidation edges registered for entity kind '{kind}'",
            code="UNKNOWN_ENTITY_KIND",
            details={"kind": kind},
        )
        self.kind = kind


class RecordStoreError(CacheSyncError):
    """The remote record store failed a request.

    Attributes:
        table: Table the request targeted
        operation: create, read, update or delete
    """

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="RECORD_STORE_ERROR",
            details={"table": table, "operation": operation},
        )
        self.table = table
        self.operation = operation
