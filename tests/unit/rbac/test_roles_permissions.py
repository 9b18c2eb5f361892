"""Tests for roles, permissions and the actor record."""

import pytest

from exitflow.core.rbac import (
    OVERRIDE_PERMISSION,
    PERMISSION_DEFINITIONS,
    SYSTEM_ACTOR,
    Action,
    Actor,
    Permission,
    PermissionChecker,
    Resource,
    Role,
    get_default_role_permissions,
)
from exitflow.core.rbac.permissions import get_permissions_for_resource, is_valid_permission


class TestPermissions:
    """Test permission strings and the permission matrix."""

    def test_permission_string_format(self):
        perm = Permission(Resource.EXIT_REQUESTS, Action.APPROVE)
        assert str(perm) == "exit_requests:approve"

    def test_from_string(self):
        """Test parsing a permission string."""
        perm = Permission.from_string("clearance_items:update")
        assert perm.resource == Resource.CLEARANCE_ITEMS
        assert perm.action == Action.UPDATE

    def test_from_string_invalid(self):
        with pytest.raises(ValueError):
            Permission.from_string("exit_requests")

    def test_override_permission(self):
        assert OVERRIDE_PERMISSION == "exit_requests:override"
        assert OVERRIDE_PERMISSION in PERMISSION_DEFINITIONS

    def test_matrix_limits_actions(self):
        """Test actions outside the matrix are not valid permissions."""
        assert is_valid_permission("certificates:issue")
        assert not is_valid_permission("dashboard:override")
        assert "dashboard:read" in get_permissions_for_resource(Resource.DASHBOARD)


class TestPermissionChecker:
    """Test wildcard-aware permission checks."""

    def test_exact_match(self):
        checker = PermissionChecker(["exit_requests:read"])
        assert checker.has_permission("exit_requests:read")
        assert not checker.has_permission("exit_requests:approve")

    def test_resource_wildcard(self):
        checker = PermissionChecker(["exit_requests:*"])
        assert checker.has_permission(Permission(Resource.EXIT_REQUESTS, Action.OVERRIDE))
        assert not checker.has_permission("financials:update")

    def test_global_wildcard(self):
        checker = PermissionChecker(["*:*"])
        assert checker.has_all_permissions(["financials:update", "certificates:issue"])

    def test_any_permission(self):
        checker = PermissionChecker(["dashboard:read"])
        assert checker.has_any_permission(["exit_requests:approve", "dashboard:read"])
        assert not checker.has_any_permission(["exit_requests:approve"])


class TestRoles:
    """Test default role capabilities."""

    def test_only_trustee_overrides_by_default(self):
        """Test the override capability is held by trustees only."""
        for role in Role:
            actor = Actor.with_default_permissions("a-1", "A", role)
            assert actor.can_override == (role == Role.TRUSTEE)

    def test_admin_can_issue_certificates(self):
        checker = PermissionChecker(get_default_role_permissions(Role.ADMIN))
        assert checker.has_permission("certificates:issue")
        assert not checker.has_permission(OVERRIDE_PERMISSION)

    def test_only_accounts_update_financials_among_departments(self):
        """Test financial updates belong to accounts among department roles."""
        for role in (Role.SUPERINTENDENT, Role.LIBRARY, Role.MESS):
            assert not PermissionChecker(get_default_role_permissions(role)).has_permission(
                "financials:update"
            )
        assert PermissionChecker(get_default_role_permissions(Role.ACCOUNTS)).has_permission(
            "financials:update"
        )

    def test_explicit_override_grant(self):
        """Test an admin granted the override permission gains the capability."""
        actor = Actor("admin-9", "Admin", Role.ADMIN, [OVERRIDE_PERMISSION])
        assert actor.can_override

    def test_default_permissions_are_copies(self):
        perms = get_default_role_permissions(Role.STUDENT)
        perms.append("*:*")
        assert "*:*" not in get_default_role_permissions(Role.STUDENT)

    def test_system_actor(self):
        assert SYSTEM_ACTOR.role == Role.SYSTEM
        assert not SYSTEM_ACTOR.can_override
