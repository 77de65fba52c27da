"""
Permission Service - cached role resolution and role/permission administration.

Two pieces:
  - PermissionResolver: read side. Every lookup goes through the app's
    ResolutionCache first and falls back to the PermissionStore on a miss.
  - RoleAdminService: write side. Every mutation of role/permission
    assignments commits and then calls ``cache.invalidate_all()`` in one
    place (``_commit_and_invalidate``), so no write path can skip it.

Usage:
    from vic_tracker.services.permission_service import get_resolver

    user = get_resolver().resolve_user(g.jwt_user_id)   # UserView
"""

import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from vic_tracker.core.exceptions import NotFoundError, StorageUnavailable, ValidationError
from vic_tracker.models import db
from vic_tracker.models.auth import Permission, Role, RolePermission, User
from vic_tracker.services.cache_service import (
    ALL_PERMISSIONS_KEY,
    ALL_ROLES_KEY,
    DEFAULT_TTL,
    ResolutionCache,
    role_key,
    role_name_key,
)
from vic_tracker.services.permission_store import (
    PermissionStore,
    PermissionView,
    RoleView,
    UserView,
)

logger = logging.getLogger(__name__)

EXTENSION_KEY = "permission_cache"


def init_permission_cache(app) -> ResolutionCache:
    """Create the process-wide cache for this app."""
    cache = ResolutionCache(ttl=app.config.get("PERMISSION_CACHE_TTL", DEFAULT_TTL))
    app.extensions[EXTENSION_KEY] = cache
    return cache


def get_cache() -> ResolutionCache:
    return current_app.extensions[EXTENSION_KEY]


def get_resolver() -> "PermissionResolver":
    return PermissionResolver(PermissionStore(), get_cache())


def get_role_admin() -> "RoleAdminService":
    return RoleAdminService(get_cache())


# ═══════════════════════════════════════════════════════════════
# Read side
# ═══════════════════════════════════════════════════════════════

class PermissionResolver:
    """Cache-aside lookups over the PermissionStore."""

    def __init__(self, store: PermissionStore, cache: ResolutionCache):
        self.store = store
        self.cache = cache

    def get_all_roles(self) -> frozenset[RoleView]:
        return self.cache.get_or_load(ALL_ROLES_KEY, self.store.load_all_roles)

    def get_role(self, role_id: int) -> RoleView:
        return self.cache.get_or_load(role_key(role_id), lambda: self.store.load_role_by_id(role_id))

    def get_role_by_name(self, name: str) -> RoleView:
        return self.cache.get_or_load(role_name_key(name), lambda: self.store.load_role_by_name(name))

    def get_all_permissions(self) -> frozenset[PermissionView]:
        return self.cache.get_or_load(ALL_PERMISSIONS_KEY, self.store.load_all_permissions)

    def resolve_user(self, user_id: str) -> UserView:
        """
        Build the principal view for an authenticated user id.

        The user row is read on every call (deactivation takes effect at
        once); the role graph comes from the cache.
        """
        user = self.store.load_user(user_id)
        role = self.get_role(user.role_id)
        return UserView(
            id=user.id,
            email=user.email,
            name=user.name,
            role_id=user.role_id,
            role=role,
            vic_id=user.vic_id,
        )


# ═══════════════════════════════════════════════════════════════
# Write side
# ═══════════════════════════════════════════════════════════════

class RoleAdminService:
    """Role/permission mutations. Each public method ends in ``_commit_and_invalidate``."""

    def __init__(self, cache: ResolutionCache):
        self.cache = cache

    def _commit_and_invalidate(self, operation: str) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageUnavailable(operation) from exc
        self.cache.invalidate_all()

    def _get_role(self, role_id: int) -> Role:
        role = db.session.get(Role, role_id)
        if role is None or not role.active:
            raise NotFoundError(resource="Role", resource_id=role_id)
        return role

    def list_roles(self) -> list[Role]:
        return Role.query_active().order_by(Role.name).all()

    def create_role(
        self,
        name: str,
        default_path: str,
        description: str | None = None,
        permission_ids: list[int] | None = None,
    ) -> Role:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Role name is required", details={"name": "required"})
        if Role.query.filter_by(name=name).first():
            raise ValidationError(f"Role '{name}' already exists", details={"name": "duplicate"})
        role = Role(name=name, default_path=default_path, description=description)
        db.session.add(role)
        db.session.flush()
        if permission_ids:
            self._assign(role.id, permission_ids)
        self._commit_and_invalidate("create_role")
        logger.info("Created role '%s' (id=%d)", name, role.id)
        return role

    def update_role(
        self,
        role_id: int,
        *,
        default_path: str | None = None,
        description: str | None = None,
    ) -> Role:
        role = self._get_role(role_id)
        if default_path is not None:
            role.default_path = default_path
        if description is not None:
            role.description = description
        self._commit_and_invalidate("update_role")
        return role

    def set_role_permissions(self, role_id: int, permission_ids: list[int]) -> Role:
        """Replace the role's permission set."""
        role = self._get_role(role_id)
        RolePermission.query.filter_by(role_id=role.id).delete()
        db.session.flush()
        self._assign(role.id, permission_ids)
        self._commit_and_invalidate("set_role_permissions")
        logger.info("Role %d permissions replaced (%d granted)", role.id, len(set(permission_ids)))
        return role

    def deactivate_role(self, role_id: int) -> None:
        role = self._get_role(role_id)
        assigned = User.query_active().filter_by(role_id=role.id).count()
        if assigned:
            raise ValidationError(
                f"Cannot delete role. {assigned} user(s) are currently assigned to this role.",
                details={"role_id": role.id, "assigned_users": assigned},
            )
        role.deactivate()
        self._commit_and_invalidate("deactivate_role")

    def deactivate_permission(self, permission_id: int) -> None:
        """System-wide revoke: the permission vanishes from every role."""
        perm = db.session.get(Permission, permission_id)
        if perm is None or not perm.active:
            raise NotFoundError(resource="Permission", resource_id=permission_id)
        perm.deactivate()
        self._commit_and_invalidate("deactivate_permission")
        logger.info("Permission '%s' deactivated", perm.name)

    def _assign(self, role_id: int, permission_ids: list[int]) -> None:
        wanted = set(permission_ids)
        found = {
            p.id for p in
            Permission.query_active().filter(Permission.id.in_(wanted)).all()
        } if wanted else set()
        missing = wanted - found
        if missing:
            db.session.rollback()
            raise ValidationError(
                "Unknown or inactive permissions",
                details={"permission_ids": sorted(missing)},
            )
        for pid in sorted(found):
            db.session.add(RolePermission(role_id=role_id, permission_id=pid))
