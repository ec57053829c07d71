"""
Role and ownership authorization for owned records.

This module decides what a user may see and change:
- Visibility filtering for record listings
- Modify/delete permission per record
- Owner assignment checks for create and reassignment
- Structured validation results for create/update/delete

Invariants:
    - admin and superadmin see and modify everything
    - A salesperson sees and modifies only records it owns
    - Missing context (no user, unknown role) degrades to "nothing allowed"
    - No I/O, no hidden state: same inputs, same answer
    - List filtering and mutation validation share one rule set

How to change safely:
    - New roles default to no access until added here
    - Keep validators returning results; only check_or_raise raises
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, TypeVar, Union

from .errors import AccessDeniedError, DenialReason
from .models import Record, Role, User, owner_of

logger = logging.getLogger(__name__)

R = TypeVar("R")
Draft = Union[Record, Mapping[str, Any]]


@dataclass(frozen=True)
class PolicyResult:
    """Outcome of a validation.

    Attributes:
        ok: Whether the action is allowed
        reason: Denial category (None when allowed)
        message: Human-readable explanation for the UI
    """

    ok: bool
    reason: Optional[DenialReason] = None
    message: Optional[str] = None

    @classmethod
    def allowed(cls) -> PolicyResult:
        return cls(ok=True)

    @classmethod
    def denied(cls, reason: DenialReason, message: str) -> PolicyResult:
        return cls(ok=False, reason=reason, message=message)

    def __bool__(self) -> bool:
        return self.ok


class AuthorizationPolicy:
    """Authorization rules for salesperson-owned records.

    Thread safety:
        This class is stateless and thread-safe.

    Example:
        >>> policy = AuthorizationPolicy()
        >>> seller = User(id="u1", role=Role.SALESPERSON, owned_resource_id="s1")
        >>> policy.can_modify(Record(id="a1", owner_id="s1"), seller)
        True
    """

    def _owned_id(self, user: User) -> Optional[str]:
        """Owned resource for a salesperson with a binding, else None."""
        if user.role is Role.SALESPERSON and user.owned_resource_id:
            return user.owned_resource_id
        return None

    def can_view(self, records: Iterable[R], user: Optional[User]) -> list[R]:
        """Filter records down to those the user may see.

        Args:
            records: Records to filter (Record instances or store rows)
            user: Current user, None when signed out

        Returns:
            The visible records, in input order
        """
        if user is None or records is None:
            return []

        if user.role.is_elevated:
            return list(records)

        owned = self._owned_id(user)
        if owned is None:
            return []

        return [r for r in records if owner_of(r) == owned]

    def can_modify(self, record: Optional[Draft], user: Optional[User]) -> bool:
        """Check if the user may update or delete a record."""
        if user is None or record is None:
            return False

        if user.role.is_elevated:
            return True

        owned = self._owned_id(user)
        if owned is None:
            return False

        return owner_of(record) == owned

    def can_assign_owner(self, candidate_owner_id: Optional[str], user: Optional[User]) -> bool:
        """Check if the user may assign a record to the given owner."""
        if user is None:
            return False

        if user.role.is_elevated:
            return True

        owned = self._owned_id(user)
        if owned is None:
            return False

        return candidate_owner_id == owned

    def validate_create(self, draft: Draft, user: Optional[User]) -> PolicyResult:
        """Validate a create request.

        Args:
            draft: New record payload; must carry an owner assignment
            user: Current user

        Returns:
            PolicyResult (ok, or the first failing rule)
        """
        if user is None:
            return PolicyResult.denied(DenialReason.UNAUTHENTICATED, "User is not authenticated")

        owner = owner_of(draft)
        if not owner:
            return PolicyResult.denied(
                DenialReason.MISSING_REQUIRED_FIELD, "A salesperson must be assigned"
            )

        if not self.can_assign_owner(owner, user):
            return PolicyResult.denied(
                DenialReason.OWNERSHIP_VIOLATION,
                "You are not allowed to create records for this salesperson",
            )

        return PolicyResult.allowed()

    def validate_update(
        self,
        existing: Draft,
        patch: Draft,
        user: Optional[User],
    ) -> PolicyResult:
        """Validate an update request.

        Reassigning the owner additionally requires can_assign_owner for
        the new owner. An empty or None owner in the patch is not a
        reassignment and is not checked here; the store keeps the owner
        column required.
        """
        if user is None:
            return PolicyResult.denied(DenialReason.UNAUTHENTICATED, "User is not authenticated")

        if not self.can_modify(existing, user):
            return PolicyResult.denied(
                DenialReason.PERMISSION_DENIED, "You are not allowed to edit this record"
            )

        new_owner = owner_of(patch)
        if new_owner and new_owner != owner_of(existing):
            if not self.can_assign_owner(new_owner, user):
                return PolicyResult.denied(
                    DenialReason.OWNERSHIP_VIOLATION,
                    "You are not allowed to assign this record to the selected salesperson",
                )

        return PolicyResult.allowed()

    def validate_delete(self, existing: Draft, user: Optional[User]) -> PolicyResult:
        """Validate a delete request (ownership only)."""
        if user is None:
            return PolicyResult.denied(DenialReason.UNAUTHENTICATED, "User is not authenticated")

        if not self.can_modify(existing, user):
            return PolicyResult.denied(
                DenialReason.PERMISSION_DENIED, "You are not allowed to delete this record"
            )

        return PolicyResult.allowed()

    def check_or_raise(self, result: PolicyResult, user: Optional[User] = None) -> None:
        """Raise AccessDeniedError if a validation result is a denial.

        Raises:
            AccessDeniedError: If result.ok is False
        """
        if result.ok:
            return
        user_id = user.id if user else None
        logger.debug(
            "Authorization denied",
            extra={"reason": result.reason.value, "user_id": user_id},
        )
        raise AccessDeniedError(result.message or "Access denied", result.reason, user_id)


# Default policy instance
_default_policy: AuthorizationPolicy | None = None


def get_policy() -> AuthorizationPolicy:
    """Get the default authorization policy instance."""
    global _default_policy
    if _default_policy is None:
        _default_policy = AuthorizationPolicy()
    return _default_policy


def can_view(records: Iterable[R], user: Optional[User]) -> list[R]:
    return get_policy().can_view(records, user)


def can_modify(record: Optional[Draft], user: Optional[User]) -> bool:
    return get_policy().can_modify(record, user)


def can_assign_owner(candidate_owner_id: Optional[str], user: Optional[User]) -> bool:
    return get_policy().can_assign_owner(candidate_owner_id, user)


def validate_create(draft: Draft, user: Optional[User]) -> PolicyResult:
    return get_policy().validate_create(draft, user)


def validate_update(existing: Draft, patch: Draft, user: Optional[User]) -> PolicyResult:
    return get_policy().validate_update(existing, patch, user)


def validate_delete(existing: Draft, user: Optional[User]) -> PolicyResult:
    return get_policy().validate_delete(existing, user)
