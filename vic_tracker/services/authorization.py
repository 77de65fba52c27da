"""
Authorization Engine - pure checks over resolved RoleView / UserView objects.

Nothing here touches storage; callers resolve the principal first
(``permission_service.PermissionResolver``) and pass the views in.

Usage:
    from vic_tracker.services.authorization import role_can_access_route, user_has_permission

    if not role_can_access_route(user.role, "/admin/incidents"):
        ...
    if user_has_permission(user, "incidents:assign"):
        ...

Passing anything other than a RoleView / UserView raises TypeError at once.
"""

from collections.abc import Iterable

from vic_tracker.services.permission_store import RoleName, RoleView, UserView

ROOT_PATH = "/"


def _require_role(role) -> RoleView:
    if not isinstance(role, RoleView):
        raise TypeError(f"expected RoleView, got {type(role).__name__}")
    return role


def _require_user(user) -> UserView:
    if not isinstance(user, UserView):
        raise TypeError(f"expected UserView, got {type(user).__name__}")
    return user


def normalize_route(route_path: str) -> str:
    """Strip a single trailing slash; the empty path becomes "/"."""
    if not isinstance(route_path, str):
        raise TypeError(f"route path must be str, got {type(route_path).__name__}")
    if route_path.endswith("/"):
        route_path = route_path[:-1]
    return route_path or ROOT_PATH


# ═══════════════════════════════════════════════════════════════
# Role-level checks
# ═══════════════════════════════════════════════════════════════

def role_has_permission(role: RoleView, permission_name: str) -> bool:
    return any(p.name == permission_name for p in _require_role(role).permissions)


def role_can_access_route(role: RoleView, route_path: str) -> bool:
    """
    Prefix-based route gate.

    A permission with route_path "/admin" grants "/admin" and every
    "/admin/..." sub-route. Matching is a plain string prefix, so "/adminx"
    also matches "/admin".
    """
    role = _require_role(role)
    path = normalize_route(route_path)

    # ADMINISTRADOR passes every route check regardless of its permission set.
    if role.kind is RoleName.ADMINISTRADOR:
        return True

    return any(
        p.route_path and path.startswith(p.route_path)
        for p in role.permissions
    )


def get_accessible_routes(role: RoleView) -> list[str]:
    return sorted({p.route_path for p in _require_role(role).permissions if p.route_path})


def get_default_path(role: RoleView) -> str:
    return _require_role(role).default_path or ROOT_PATH


# ═══════════════════════════════════════════════════════════════
# User-level delegations
# ═══════════════════════════════════════════════════════════════

def is_admin(user: UserView) -> bool:
    return _require_user(user).role.kind is RoleName.ADMINISTRADOR


def user_has_permission(user: UserView, permission_name: str) -> bool:
    return role_has_permission(_require_user(user).role, permission_name)


def user_can_perform_action(user: UserView, resource: str, action: str) -> bool:
    return any(
        p.resource == resource and p.action == action
        for p in _require_user(user).role.permissions
    )


def get_user_resource_permissions(user: UserView, resource: str) -> list[str]:
    """Actions the user may perform on ``resource``, sorted."""
    return sorted({
        p.action for p in _require_user(user).role.permissions
        if p.resource == resource and p.action
    })


def user_has_all_permissions(user: UserView, names: Iterable[str]) -> bool:
    """AND semantics; stops at the first missing permission."""
    granted = {p.name for p in _require_user(user).role.permissions}
    for name in names:
        if name not in granted:
            return False
    return True


def user_has_any_permission(user: UserView, names: Iterable[str]) -> bool:
    """OR semantics; stops at the first granted permission."""
    granted = {p.name for p in _require_user(user).role.permissions}
    for name in names:
        if name in granted:
            return True
    return False
