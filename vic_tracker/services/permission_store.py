"""
Permission Store - the only component that reads the role/permission graph from storage.

Returns frozen value objects (RoleView, PermissionView, UserView); no ORM
instance crosses this boundary, so cached values stay valid after the
session that loaded them is closed.

Filtering rules:
  - inactive roles are never returned
  - inactive permissions are stripped from every role, even when a
    role_permissions junction row still links them (system-wide revoke)

Any SQLAlchemyError is re-raised as StorageUnavailable with the cause chained.
"""

import enum
import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from vic_tracker.core.exceptions import NotFoundError, StorageUnavailable
from vic_tracker.models import db
from vic_tracker.models.auth import Permission, Role, RolePermission, User

logger = logging.getLogger(__name__)


class RoleName(str, enum.Enum):
    ADMINISTRADOR = "ADMINISTRADOR"
    FSR = "FSR"
    CLIENT = "CLIENT"
    GUEST = "GUEST"

    @classmethod
    def parse(cls, name):
        try:
            return cls(name)
        except ValueError:
            return None


@dataclass(frozen=True)
class PermissionView:
    id: int
    name: str
    resource: str | None = None
    action: str | None = None
    route_path: str | None = None


@dataclass(frozen=True)
class RoleView:
    id: int
    name: str
    default_path: str | None = None
    permissions: frozenset[PermissionView] = field(default_factory=frozenset)

    @property
    def kind(self) -> RoleName | None:
        """Closed role tag; None for custom roles outside the fixed set."""
        return RoleName.parse(self.name)


@dataclass(frozen=True)
class UserView:
    id: str
    email: str
    name: str | None
    role_id: int
    role: RoleView
    vic_id: str | None = None


def _permission_view(p: Permission) -> PermissionView:
    return PermissionView(
        id=p.id,
        name=p.name,
        resource=p.resource,
        action=p.action,
        route_path=p.route_path,
    )


class PermissionStore:
    """Loads roles and permissions through the SQLAlchemy session."""

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    # ── Roles ───────────────────────────────────────────────────────────

    def _active_permissions_by_role(self, role_ids: list[int]) -> dict[int, set[PermissionView]]:
        rows = (
            self.session.query(RolePermission.role_id, Permission)
            .join(Permission, RolePermission.permission_id == Permission.id)
            .filter(RolePermission.role_id.in_(role_ids))
            .filter(Permission.active.is_(True))
            .all()
        )
        result: dict[int, set[PermissionView]] = {rid: set() for rid in role_ids}
        for role_id, perm in rows:
            result[role_id].add(_permission_view(perm))
        return result

    def _to_views(self, roles: list[Role]) -> list[RoleView]:
        if not roles:
            return []
        perms = self._active_permissions_by_role([r.id for r in roles])
        return [
            RoleView(
                id=r.id,
                name=r.name,
                default_path=r.default_path,
                permissions=frozenset(perms[r.id]),
            )
            for r in roles
        ]

    def load_all_roles(self) -> frozenset[RoleView]:
        try:
            roles = self.session.query(Role).filter(Role.active.is_(True)).all()
            views = self._to_views(roles)
        except SQLAlchemyError as exc:
            raise StorageUnavailable("load_all_roles") from exc
        logger.debug("Loaded %d active roles", len(views))
        return frozenset(views)

    def load_role_by_id(self, role_id: int) -> RoleView:
        try:
            role = (
                self.session.query(Role)
                .filter(Role.id == role_id, Role.active.is_(True))
                .first()
            )
            views = self._to_views([role] if role else [])
        except SQLAlchemyError as exc:
            raise StorageUnavailable(f"load_role_by_id({role_id})") from exc
        if not views:
            raise NotFoundError(resource="Role", resource_id=role_id)
        return views[0]

    def load_role_by_name(self, name: str) -> RoleView:
        try:
            role = (
                self.session.query(Role)
                .filter(Role.name == name, Role.active.is_(True))
                .first()
            )
            views = self._to_views([role] if role else [])
        except SQLAlchemyError as exc:
            raise StorageUnavailable(f"load_role_by_name({name})") from exc
        if not views:
            raise NotFoundError(resource="Role", resource_id=name)
        return views[0]

    # ── Permissions ─────────────────────────────────────────────────────

    def load_all_permissions(self) -> frozenset[PermissionView]:
        try:
            perms = self.session.query(Permission).filter(Permission.active.is_(True)).all()
        except SQLAlchemyError as exc:
            raise StorageUnavailable("load_all_permissions") from exc
        return frozenset(_permission_view(p) for p in perms)

    # ── Principals ──────────────────────────────────────────────────────

    def load_user(self, user_id: str) -> User:
        """Active user row; principal resolution attaches the (cached) role separately."""
        try:
            user = (
                self.session.query(User)
                .filter(User.id == user_id, User.active.is_(True))
                .first()
            )
        except SQLAlchemyError as exc:
            raise StorageUnavailable(f"load_user({user_id})") from exc
        if user is None:
            raise NotFoundError(resource="User", resource_id=user_id)
        return user
