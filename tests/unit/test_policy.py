"""
Unit tests for the authorization policy.

Tests cover:
- Visibility filtering per role
- Modify and owner-assignment checks
- Create/update/delete validation results
- Determinism
"""

import pytest

from sdk.cachesync_sdk.errors import AccessDeniedError, DenialReason
from sdk.cachesync_sdk.models import Record, Role, User
from sdk.cachesync_sdk.policy import (
    AuthorizationPolicy,
    PolicyResult,
    can_view,
    validate_create,
)


@pytest.fixture
def policy():
    """Create a policy."""
    return AuthorizationPolicy()


@pytest.fixture
def admin():
    return User(id="u-admin", role=Role.ADMIN, company_root_id="u-admin")


@pytest.fixture
def superadmin():
    return User(id="u-root", role=Role.SUPERADMIN)


@pytest.fixture
def seller():
    return User(id="u-seller", role=Role.SALESPERSON, owned_resource_id="s1")


@pytest.fixture
def records():
    return [
        Record(id="a1", owner_id="s1"),
        Record(id="a2", owner_id="s2"),
        Record(id="a3", owner_id="s1", fields={"title": "Follow-up"}),
    ]


class TestCanView:
    """Tests for list filtering."""

    def test_no_user_sees_nothing(self, policy, records):
        assert policy.can_view(records, None) == []

    @pytest.mark.parametrize("role", [Role.ADMIN, Role.SUPERADMIN])
    def test_elevated_roles_see_everything(self, policy, records, role):
        user = User(id="u", role=role)
        assert policy.can_view(records, user) == records

    def test_salesperson_sees_own_records(self, policy, records, seller):
        visible = policy.can_view(records, seller)
        assert [r.id for r in visible] == ["a1", "a3"]

    def test_salesperson_without_binding_sees_nothing(self, policy, records):
        user = User(id="u", role=Role.SALESPERSON)
        assert policy.can_view(records, user) == []

    def test_unknown_role_sees_nothing(self, policy, records):
        user = User.from_dict({"id": "u", "role": "auditor"})
        assert user.role is Role.UNKNOWN
        assert policy.can_view(records, user) == []

    def test_filters_store_rows(self, policy, seller):
        rows = [
            {"id": "a1", "vendedor_id": "s1"},
            {"id": "a2", "vendedor_id": "s2"},
            {"id": "a3"},
        ]
        assert policy.can_view(rows, seller) == [{"id": "a1", "vendedor_id": "s1"}]

    def test_module_function_uses_default_policy(self, records, seller):
        assert [r.id for r in can_view(records, seller)] == ["a1", "a3"]


class TestCanModify:
    """Tests for modify permission."""

    def test_admin_can_modify_any(self, policy, records, admin, superadmin):
        for record in records:
            assert policy.can_modify(record, admin) is True
            assert policy.can_modify(record, superadmin) is True

    def test_salesperson_modifies_only_own(self, policy, records, seller):
        assert [policy.can_modify(r, seller) for r in records] == [True, False, True]

    def test_missing_user_or_record(self, policy, records, admin):
        assert policy.can_modify(records[0], None) is False
        assert policy.can_modify(None, admin) is False


class TestCanAssignOwner:
    """Tests for owner assignment."""

    def test_admin_assigns_anyone(self, policy, admin):
        assert policy.can_assign_owner("s9", admin) is True

    def test_salesperson_assigns_only_self(self, policy, seller):
        assert policy.can_assign_owner("s1", seller) is True
        assert policy.can_assign_owner("s2", seller) is False

    def test_no_user(self, policy):
        assert policy.can_assign_owner("s1", None) is False


class TestValidateCreate:
    """Tests for create validation."""

    def test_unauthenticated(self, policy):
        result = policy.validate_create({"owner_id": "s1"}, None)
        assert result.ok is False
        assert result.reason is DenialReason.UNAUTHENTICATED

    def test_missing_owner(self, policy, admin):
        result = policy.validate_create({"title": "Demo"}, admin)
        assert result.reason is DenialReason.MISSING_REQUIRED_FIELD

    def test_salesperson_for_other_owner(self, policy, seller):
        result = policy.validate_create({"owner_id": "s2"}, seller)
        assert result.reason is DenialReason.OWNERSHIP_VIOLATION
        assert result.message

    def test_salesperson_for_self(self, policy, seller):
        assert policy.validate_create({"vendedor_id": "s1"}, seller) == PolicyResult.allowed()

    def test_admin_for_anyone(self, policy, admin):
        assert policy.validate_create({"owner_id": "s7"}, admin).ok is True

    def test_module_function(self):
        assert validate_create({"owner_id": "s1"}, None).reason is DenialReason.UNAUTHENTICATED


class TestValidateUpdate:
    """Tests for update validation."""

    def test_unauthenticated(self, policy, records):
        assert policy.validate_update(records[0], {}, None).reason is DenialReason.UNAUTHENTICATED

    def test_foreign_record_denied(self, policy, records, seller):
        result = policy.validate_update(records[1], {"title": "x"}, seller)
        assert result.reason is DenialReason.PERMISSION_DENIED

    def test_own_record_without_reassignment(self, policy, records, seller):
        assert policy.validate_update(records[0], {"title": "x"}, seller).ok is True

    def test_patch_repeating_current_owner_is_not_reassignment(self, policy, records, seller):
        assert policy.validate_update(records[0], {"owner_id": "s1"}, seller).ok is True

    def test_salesperson_cannot_hand_off(self, policy, records, seller):
        result = policy.validate_update(records[0], {"owner_id": "s2"}, seller)
        assert result.reason is DenialReason.OWNERSHIP_VIOLATION

    def test_admin_can_reassign(self, policy, records, admin):
        assert policy.validate_update(records[0], {"owner_id": "s2"}, admin).ok is True

    @pytest.mark.parametrize("owner", [None, ""])
    def test_empty_owner_in_patch_is_not_reassignment(self, policy, records, seller, owner):
        assert policy.validate_update(records[0], {"owner_id": owner}, seller).ok is True


class TestValidateDelete:
    """Tests for delete validation."""

    def test_unauthenticated(self, policy, records):
        assert policy.validate_delete(records[0], None).reason is DenialReason.UNAUTHENTICATED

    def test_foreign_record_denied(self, policy, records, seller):
        assert policy.validate_delete(records[1], seller).reason is DenialReason.PERMISSION_DENIED

    def test_own_record_allowed(self, policy, records, seller):
        assert policy.validate_delete(records[0], seller).ok is True


class TestDeterminism:
    """Repeated calls give identical answers."""

    def test_repeated_calls_match(self, policy, records, seller, admin):
        for user in (seller, admin, None):
            first = [
                policy.can_view(records, user),
                [policy.can_modify(r, user) for r in records],
                policy.validate_create({"owner_id": "s2"}, user),
                policy.validate_update(records[0], {"owner_id": "s2"}, user),
                policy.validate_delete(records[1], user),
            ]
            second = [
                policy.can_view(records, user),
                [policy.can_modify(r, user) for r in records],
                policy.validate_create({"owner_id": "s2"}, user),
                policy.validate_update(records[0], {"owner_id": "s2"}, user),
                policy.validate_delete(records[1], user),
            ]
            assert first == second


class TestCheckOrRaise:
    """Tests for converting results into exceptions."""

    def test_allowed_does_not_raise(self, policy, admin):
        policy.check_or_raise(PolicyResult.allowed(), admin)

    def test_denied_raises_with_reason(self, policy, seller):
        result = policy.validate_create({"owner_id": "s2"}, seller)
        with pytest.raises(AccessDeniedError) as exc_info:
            policy.check_or_raise(result, seller)
        assert exc_info.value.reason is DenialReason.OWNERSHIP_VIOLATION
        assert exc_info.value.code == "OWNERSHIP_VIOLATION"
        assert exc_info.value.user_id == "u-seller"
