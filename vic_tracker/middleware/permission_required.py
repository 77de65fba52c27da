"""
Permission Decorators - JWT-aware RBAC decorators for route protection.

Provides decorators that resolve the JWT-authenticated user into a
principal (``g.principal``, a UserView) and check its permissions before
allowing access to an endpoint.

Usage:
    @incidents_bp.route("", methods=["POST"])
    @require_permission("incidents:create")
    def create():
        principal = g.principal
        ...

    @roles_bp.route("/roles", methods=["GET"])
    @require_any_permission("roles:read", "roles:update")
    def list_roles():
        ...

No JWT user → 401. Unknown or deactivated user → 401.
Missing permission → 403. ADMINISTRADOR holds every permission through
its grants; there is no separate bypass at this layer.
"""

import functools
import logging

from flask import g

from vic_tracker.core.exceptions import NotFoundError
from vic_tracker.services.authorization import (
    user_has_all_permissions,
    user_has_any_permission,
    user_has_permission,
)
from vic_tracker.services.permission_service import get_resolver
from vic_tracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def _authenticate():
    """Resolve g.jwt_user_id into g.principal. Returns an error response or None."""
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is None:
        return api_error(E.UNAUTHENTICATED, "Authentication required")
    try:
        g.principal = get_resolver().resolve_user(user_id)
    except NotFoundError:
        logger.warning("Token for unknown or inactive user %s", user_id)
        return api_error(E.UNAUTHENTICATED, "Authentication required")
    return None


def require_login(f):
    """Decorator: require an authenticated principal, no permission check."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        denied = _authenticate()
        if denied is not None:
            return denied
        return f(*args, **kwargs)
    return decorated


def require_permission(name: str):
    """
    Decorator: require the JWT user to hold a specific permission.

    Args:
        name: Permission name, e.g. "incidents:create"
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            denied = _authenticate()
            if denied is not None:
                return denied

            if not user_has_permission(g.principal, name):
                logger.warning(
                    "User %s denied: missing permission '%s' on %s",
                    g.principal.id, name, f.__name__,
                )
                return api_error(E.FORBIDDEN, "Permission denied", details={"required": name})

            return f(*args, **kwargs)
        return decorated
    return decorator


def require_any_permission(*names: str):
    """
    Decorator: require the JWT user to hold at least ONE of the listed permissions.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            denied = _authenticate()
            if denied is not None:
                return denied

            if not user_has_any_permission(g.principal, list(names)):
                logger.warning(
                    "User %s denied: missing any of %s on %s",
                    g.principal.id, names, f.__name__,
                )
                return api_error(E.FORBIDDEN, "Permission denied", details={"required_any": list(names)})

            return f(*args, **kwargs)
        return decorated
    return decorator


def require_all_permissions(*names: str):
    """
    Decorator: require the JWT user to hold ALL of the listed permissions.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            denied = _authenticate()
            if denied is not None:
                return denied

            if not user_has_all_permissions(g.principal, list(names)):
                logger.warning(
                    "User %s denied: missing all of %s on %s",
                    g.principal.id, names, f.__name__,
                )
                return api_error(E.FORBIDDEN, "Permission denied", details={"required_all": list(names)})

            return f(*args, **kwargs)
        return decorated
    return decorator
