"""
Authorization engine tests - pure functions over RoleView / UserView:
  - route prefix matching and trailing-slash normalization
  - ADMINISTRADOR route bypass
  - permission name / resource-action checks
  - all/any combinators
  - type validation
"""

import pytest

from vic_tracker.services.authorization import (
    get_accessible_routes,
    get_default_path,
    get_user_resource_permissions,
    is_admin,
    normalize_route,
    role_can_access_route,
    role_has_permission,
    user_can_perform_action,
    user_has_all_permissions,
    user_has_any_permission,
    user_has_permission,
)
from vic_tracker.services.permission_store import PermissionView, RoleName, RoleView, UserView


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

ROUTE_ADMIN = PermissionView(1, "route:admin", route_path="/admin")
ROUTE_FSR = PermissionView(2, "route:fsr", route_path="/fsr")
INC_READ = PermissionView(3, "incidents:read", "incidents", "read", "/incidents")
INC_CREATE = PermissionView(4, "incidents:create", "incidents", "create")
INC_UPDATE = PermissionView(5, "incidents:update", "incidents", "update")
WO_COMPLETE = PermissionView(6, "work-orders:complete", "work-orders", "complete")


def _role(name, *perms, default_path=None, role_id=1):
    return RoleView(id=role_id, name=name, default_path=default_path, permissions=frozenset(perms))


def _user(role):
    return UserView(id="u-1", email="u@test.local", name="U", role_id=role.id, role=role)


FSR = _role("FSR", ROUTE_FSR, INC_READ, INC_UPDATE, WO_COMPLETE, default_path="/fsr", role_id=2)
ADMIN_NO_PERMS = _role("ADMINISTRADOR", default_path="/admin", role_id=1)


# ═══════════════════════════════════════════════════════════════════════════
# Routes
# ═══════════════════════════════════════════════════════════════════════════


class TestRouteAccess:

    def test_exact_route(self):
        assert role_can_access_route(FSR, "/fsr") is True

    def test_sub_route(self):
        assert role_can_access_route(FSR, "/fsr/work-orders/12") is True

    def test_trailing_slash_is_ignored(self):
        assert role_can_access_route(FSR, "/fsr/") is True
        assert role_can_access_route(FSR, "/incidents/") is True

    def test_plain_prefix_match(self):
        assert role_can_access_route(FSR, "/fsrx") is True

    def test_other_role_route_denied(self):
        assert role_can_access_route(FSR, "/admin") is False
        assert role_can_access_route(FSR, "/") is False

    def test_admin_bypass_without_any_permission(self):
        assert role_can_access_route(ADMIN_NO_PERMS, "/fsr/anything") is True
        assert role_can_access_route(ADMIN_NO_PERMS, "/") is True

    def test_custom_role_with_admin_route_is_not_bypassed(self):
        auditor = _role("AUDITOR", ROUTE_ADMIN, role_id=9)
        assert role_can_access_route(auditor, "/admin/roles") is True
        assert role_can_access_route(auditor, "/fsr") is False
        assert auditor.kind is None

    def test_accessible_routes_sorted_unique(self):
        assert get_accessible_routes(FSR) == ["/fsr", "/incidents"]

    def test_default_path(self):
        assert get_default_path(FSR) == "/fsr"
        assert get_default_path(_role("EMPTY", role_id=7)) == "/"

    @pytest.mark.parametrize("raw,expected", [
        ("/admin/", "/admin"),
        ("/admin", "/admin"),
        ("/", "/"),
        ("", "/"),
    ])
    def test_normalize_route(self, raw, expected):
        assert normalize_route(raw) == expected


# ═══════════════════════════════════════════════════════════════════════════
# Permissions
# ═══════════════════════════════════════════════════════════════════════════


class TestPermissionChecks:

    def test_role_has_permission(self):
        assert role_has_permission(FSR, "incidents:update") is True
        assert role_has_permission(FSR, "incidents:create") is False

    def test_admin_has_no_implicit_permissions(self):
        """The bypass covers routes only; named permissions come from grants."""
        assert role_has_permission(ADMIN_NO_PERMS, "incidents:read") is False

    def test_user_delegates_to_role(self):
        user = _user(FSR)
        assert user_has_permission(user, "work-orders:complete") is True
        assert user_has_permission(user, "work-orders:delete") is False

    def test_resource_action(self):
        user = _user(FSR)
        assert user_can_perform_action(user, "incidents", "update") is True
        assert user_can_perform_action(user, "incidents", "create") is False
        assert user_can_perform_action(user, "work-orders", "update") is False

    def test_resource_permissions_sorted(self):
        user = _user(FSR)
        assert get_user_resource_permissions(user, "incidents") == ["read", "update"]
        assert get_user_resource_permissions(user, "roles") == []

    def test_all_permissions(self):
        user = _user(FSR)
        assert user_has_all_permissions(user, ["incidents:read", "incidents:update"]) is True
        assert user_has_all_permissions(user, ["incidents:read", "incidents:create"]) is False
        assert user_has_all_permissions(user, []) is True

    def test_any_permission(self):
        user = _user(FSR)
        assert user_has_any_permission(user, ["incidents:create", "incidents:read"]) is True
        assert user_has_any_permission(user, ["incidents:create", "roles:update"]) is False
        assert user_has_any_permission(user, []) is False

    def test_all_stops_at_first_missing(self):
        seen = []

        def names():
            for n in ("incidents:create", "incidents:read"):
                seen.append(n)
                yield n

        assert user_has_all_permissions(_user(FSR), names()) is False
        assert seen == ["incidents:create"]

    def test_is_admin(self):
        assert is_admin(_user(ADMIN_NO_PERMS)) is True
        assert is_admin(_user(FSR)) is False
        assert ADMIN_NO_PERMS.kind is RoleName.ADMINISTRADOR


# ═══════════════════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════════════════


class TestArgumentValidation:

    def test_role_must_be_role_view(self):
        with pytest.raises(TypeError):
            role_can_access_route({"name": "FSR"}, "/fsr")
        with pytest.raises(TypeError):
            role_has_permission(None, "incidents:read")

    def test_user_must_be_user_view(self):
        with pytest.raises(TypeError):
            user_has_permission(FSR, "incidents:read")

    def test_route_must_be_str(self):
        with pytest.raises(TypeError):
            role_can_access_route(FSR, None)
