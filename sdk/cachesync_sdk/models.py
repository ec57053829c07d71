"""
Domain types for the cachesync SDK.

This module defines the values the policy, graph and coordinator work on:
- Role / User: who is acting
- Record: an owned, mutable business record (e.g. an appointment)
- EntityKind: closed set of business record categories
- MutationOp: kind of write that just succeeded
- RegionKey: tuple key of a cache region

Invariants:
    - A salesperson user always carries owned_resource_id; a profile that
      breaks this still parses, and the policy denies it everything
    - Every mutable record has exactly one owner_id
    - EntityKind and region names are static; nothing registers them at runtime

Example:
    >>> user = User.from_dict({"id": "u1", "role": "vendedor", "vendedor_id": "s1"})
    >>> user.role
    <Role.SALESPERSON: 'salesperson'>
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable, Mapping, Optional, Tuple

RegionKey = Tuple[Hashable, ...]

# The store names the owning salesperson column "vendedor_id".
OWNER_FIELDS = ("owner_id", "vendedor_id")


class Role(Enum):
    """User roles known to the authorization policy."""

    ADMIN = "admin"
    SALESPERSON = "salesperson"
    SUPERADMIN = "superadmin"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | Role | None) -> Role:
        """Parse a role string; unrecognized values map to UNKNOWN."""
        if isinstance(value, Role):
            return value
        if value == "vendedor":
            return cls.SALESPERSON
        for role in cls:
            if role.value == value:
                return role
        return cls.UNKNOWN

    @property
    def is_elevated(self) -> bool:
        """Whether the role bypasses ownership checks."""
        return self in (Role.ADMIN, Role.SUPERADMIN)


class EntityKind(Enum):
    """Categories of business records that can be mutated."""

    CLIENT = "client"
    PRODUCT = "product"
    SALESPERSON = "salesperson"
    PROPOSAL = "proposal"
    APPOINTMENT = "appointment"
    CATEGORY = "category"
    SEGMENT = "segment"
    FILE = "file"
    ACTIVITY = "activity"

    @classmethod
    def parse(cls, value: str | EntityKind) -> Optional[EntityKind]:
        """Return the matching kind, or None when the value is not a known kind."""
        if isinstance(value, EntityKind):
            return value
        for kind in cls:
            if kind.value == value:
                return kind
        return None


class MutationOp(Enum):
    """Write operations reported to the refresh coordinator."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @property
    def touches_identity(self) -> bool:
        """Creates and deletes can change derived identity fields; updates cannot."""
        return self in (MutationOp.CREATE, MutationOp.DELETE)


def region(name: str, *params: Hashable) -> RegionKey:
    """Build a region key, e.g. region("appointments", "a-1")."""
    return (name, *params)


IDENTITY_REGION: RegionKey = region("auth", "profile")


def owner_of(data: Mapping[str, Any] | Record | None) -> Optional[str]:
    """Read the owner assignment from a record, draft or patch."""
    if data is None:
        return None
    if isinstance(data, Record):
        return data.owner_id
    for name in OWNER_FIELDS:
        value = data.get(name)
        if value:
            return value
    return None


@dataclass(frozen=True)
class User:
    """The authenticated user the policy evaluates.

    Attributes:
        id: User identifier
        role: Role within the tenant
        owned_resource_id: Salesperson record the user is bound to
        company_root_id: Tenant root the user's data belongs to
    """

    id: str
    role: Role
    owned_resource_id: Optional[str] = None
    company_root_id: Optional[str] = None

    @property
    def is_tenant_root(self) -> bool:
        return self.role is Role.ADMIN and self.company_root_id == self.id

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> User:
        """Create from an identity profile payload."""
        return cls(
            id=data["id"],
            role=Role.parse(data.get("role")),
            owned_resource_id=data.get("owned_resource_id") or data.get("vendedor_id"),
            company_root_id=(
                data.get("company_root_id")
                or data.get("company_profile_id")
                or data.get("admin_profile_id")
            ),
        )


@dataclass(frozen=True)
class Record:
    """A record owned by exactly one salesperson.

    Attributes:
        id: Record identifier
        owner_id: Owning salesperson
        fields: Remaining business fields
    """

    id: str
    owner_id: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Record:
        """Create from a row returned by the record store."""
        owner = owner_of(data)
        if not owner:
            raise ValueError(f"Record {data.get('id')} has no owner")
        rest = {k: v for k, v in data.items() if k != "id" and k not in OWNER_FIELDS}
        return cls(id=data["id"], owner_id=owner, fields=rest)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "owner_id": self.owner_id, **self.fields}
