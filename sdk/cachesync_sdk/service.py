"""
Authorized writes with cache refresh.

GuardedMutations ties the pieces together for one owned table:
validate with the policy -> write to the record store -> refresh the cache.

Example:
    >>> appointments = GuardedMutations(store, coordinator)
    >>> result = await appointments.create({"owner_id": "s1", "title": "Demo"}, user)
    >>> if not result.success:
    ...     show_error(result.error)

Invariants:
    - Nothing is written when validation fails
    - The cache is refreshed only after the store acknowledged the write
    - Store failures come back as results; they are never raised
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from .coordinator import RefreshCoordinator, RefreshReport
from .errors import DenialReason, RecordStoreError
from .models import EntityKind, MutationOp, Record, User
from .policy import AuthorizationPolicy, PolicyResult, get_policy

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


@runtime_checkable
class RecordStore(Protocol):
    """Async CRUD over named tables of the remote store.

    Implementations raise an exception with a human-readable message on
    failure.
    """

    @abstractmethod
    async def create(self, table: str, payload: Mapping[str, Any]) -> Row:
        ...

    @abstractmethod
    async def read(self, table: str, predicate: Optional[Mapping[str, Any]] = None) -> List[Row]:
        ...

    @abstractmethod
    async def update(self, table: str, record_id: str, patch: Mapping[str, Any]) -> Row:
        ...

    @abstractmethod
    async def delete(self, table: str, record_id: str) -> None:
        ...


@dataclass
class MutationResult:
    """Result of a guarded mutation.

    Attributes:
        success: Whether the write happened
        record: Row returned by the store (create/update)
        reason: Denial category when the policy refused
        error: Human-readable error message
        refresh: Cache refresh report when the write succeeded
    """

    success: bool
    record: Optional[Row] = None
    reason: Optional[DenialReason] = None
    error: Optional[str] = None
    refresh: Optional[RefreshReport] = None

    @classmethod
    def denied(cls, result: PolicyResult) -> MutationResult:
        return cls(success=False, reason=result.reason, error=result.message)


class GuardedMutations:
    """Policy-checked CRUD for one owned table."""

    def __init__(
        self,
        store: RecordStore,
        coordinator: RefreshCoordinator,
        *,
        policy: Optional[AuthorizationPolicy] = None,
        table: str = "agendamentos",
        kind: EntityKind = EntityKind.APPOINTMENT,
    ) -> None:
        """Initialize the service.

        Args:
            store: Remote record store
            coordinator: Refresh coordinator for post-write invalidation
            policy: Authorization policy (defaults to get_policy())
            table: Store table holding the records
            kind: Entity kind reported to the coordinator
        """
        self._store = store
        self._coordinator = coordinator
        self._policy = policy or get_policy()
        self._table = table
        self._kind = kind

    async def list_visible(
        self,
        user: Optional[User],
        predicate: Optional[Mapping[str, Any]] = None,
    ) -> List[Row]:
        """Read rows and keep those the user may see.

        Raises:
            RecordStoreError: If the store read fails
        """
        if user is None:
            return []
        try:
            rows = await self._store.read(self._table, predicate)
        except Exception as e:
            raise RecordStoreError(str(e), table=self._table, operation="read") from e
        return self._policy.can_view(rows, user)

    async def create(self, draft: Mapping[str, Any], user: Optional[User]) -> MutationResult:
        verdict = self._policy.validate_create(draft, user)
        if not verdict.ok:
            return MutationResult.denied(verdict)

        return await self._write(MutationOp.CREATE, self._store.create(self._table, draft))

    async def update(
        self,
        existing: Record | Mapping[str, Any],
        patch: Mapping[str, Any],
        user: Optional[User],
    ) -> MutationResult:
        verdict = self._policy.validate_update(existing, patch, user)
        if not verdict.ok:
            return MutationResult.denied(verdict)

        return await self._write(
            MutationOp.UPDATE, self._store.update(self._table, _id_of(existing), patch)
        )

    async def delete(
        self,
        existing: Record | Mapping[str, Any],
        user: Optional[User],
    ) -> MutationResult:
        verdict = self._policy.validate_delete(existing, user)
        if not verdict.ok:
            return MutationResult.denied(verdict)

        return await self._write(MutationOp.DELETE, self._store.delete(self._table, _id_of(existing)))

    async def _write(self, op: MutationOp, request: Any) -> MutationResult:
        """Await the store call, then refresh dependent regions."""
        try:
            row = await request
        except Exception as e:
            logger.warning(f"{op.value} on {self._table} failed: {e}")
            return MutationResult(success=False, error=str(e) or f"{op.value} failed")

        refresh = await self._coordinator.after_mutation(self._kind, op)
        return MutationResult(success=True, record=row, refresh=refresh)


def _id_of(record: Record | Mapping[str, Any]) -> str:
    if isinstance(record, Record):
        return record.id
    return record["id"]
