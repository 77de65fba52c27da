"""
Auth Models - inspection centers, users, roles, permissions.

Every principal holds exactly one role. Roles gather permissions through
the role_permissions junction table; a permission may carry a route_path
that gates a URL prefix in addition to (or instead of) a named action.

All tables soft-delete through ``active`` (see ActiveMixin).
"""

import uuid
from datetime import datetime, timezone

from vic_tracker.models import db
from vic_tracker.models.soft_delete import ActiveMixin


# ═══════════════════════════════════════════════════════════════
# 1. VEHICLE INSPECTION CENTERS
# ═══════════════════════════════════════════════════════════════
class VehicleInspectionCenter(ActiveMixin, db.Model):
    __tablename__ = "vics"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(200), nullable=False)
    code = db.Column(db.String(50), unique=True)
    address = db.Column(db.String(300))
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    users = db.relationship("User", back_populates="vic", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "address": self.address,
            "active": self.active,
        }


# ═══════════════════════════════════════════════════════════════
# 2. USERS
# ═══════════════════════════════════════════════════════════════
class User(ActiveMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = db.Column(db.String(200), unique=True, nullable=False)
    name = db.Column(db.String(200))
    role_id = db.Column(db.Integer, db.ForeignKey("roles.id"), nullable=False, index=True)
    vic_id = db.Column(db.String(36), db.ForeignKey("vics.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    role = db.relationship("Role", back_populates="users")
    vic = db.relationship("VehicleInspectionCenter", back_populates="users")

    def to_dict(self, include_role=False):
        d = {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role_id": self.role_id,
            "vic_id": self.vic_id,
            "active": self.active,
        }
        if include_role and self.role is not None:
            d["role"] = self.role.name
        return d


# ═══════════════════════════════════════════════════════════════
# 3. ROLES
# ═══════════════════════════════════════════════════════════════
class Role(ActiveMixin, db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text)
    default_path = db.Column(db.String(200))  # landing route after login
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    role_permissions = db.relationship(
        "RolePermission", back_populates="role", lazy="dynamic", cascade="all, delete-orphan"
    )
    users = db.relationship("User", back_populates="role", lazy="dynamic")

    def to_dict(self, include_permissions=False):
        d = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "default_path": self.default_path,
            "active": self.active,
        }
        if include_permissions:
            d["permissions"] = sorted(
                rp.permission.name for rp in self.role_permissions.all()
                if rp.permission.active
            )
        return d


# ═══════════════════════════════════════════════════════════════
# 4. PERMISSIONS
# ═══════════════════════════════════════════════════════════════
class Permission(ActiveMixin, db.Model):
    __tablename__ = "permissions"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)  # e.g. "incidents:create"
    description = db.Column(db.Text)
    resource = db.Column(db.String(100))  # e.g. "incidents"
    action = db.Column(db.String(50))  # e.g. "create"
    route_path = db.Column(db.String(200))  # e.g. "/admin", gates that URL prefix
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    role_permissions = db.relationship("RolePermission", back_populates="permission", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "resource": self.resource,
            "action": self.action,
            "route_path": self.route_path,
            "active": self.active,
        }


# ═══════════════════════════════════════════════════════════════
# 5. ROLE_PERMISSIONS (Junction table)
# ═══════════════════════════════════════════════════════════════
class RolePermission(db.Model):
    __tablename__ = "role_permissions"

    id = db.Column(db.Integer, primary_key=True)
    role_id = db.Column(
        db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False
    )
    permission_id = db.Column(
        db.Integer, db.ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (
        db.UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
    )

    role = db.relationship("Role", back_populates="role_permissions")
    permission = db.relationship("Permission", back_populates="role_permissions")
