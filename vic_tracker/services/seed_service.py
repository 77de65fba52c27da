"""
Seed Service - demo catalog: permissions, roles, statuses, types, one VIC, one user per role.

Safe to run multiple times: rows are matched by their unique name/email/code
and only missing ones are inserted. Existing role grants are topped up, never
removed.

Usage:
    flask seed-demo

    from vic_tracker.services.seed_service import seed_demo_data
    counts = seed_demo_data()
    db.session.commit()
"""

import logging

from vic_tracker.models import db
from vic_tracker.models.auth import Permission, Role, RolePermission, User, VehicleInspectionCenter
from vic_tracker.models.incident import IncidentStatus, IncidentType

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
# CATALOG
# ═══════════════════════════════════════════════════════════════════

# (name, description, resource, action, route_path)
PERMISSIONS = [
    ("route:admin", "Access to admin dashboard", None, None, "/admin"),
    ("route:fsr", "Access to FSR dashboard", None, None, "/fsr"),
    ("route:client", "Access to client dashboard", None, None, "/client"),
    ("route:guest", "Access to guest dashboard", None, None, "/guest"),

    ("incidents:read", "View incidents", "incidents", "read", "/incidents"),
    ("incidents:create", "Create incidents", "incidents", "create", None),
    ("incidents:update", "Update incidents", "incidents", "update", None),
    ("incidents:delete", "Delete incidents", "incidents", "delete", None),
    ("incidents:assign", "Assign incidents", "incidents", "assign", None),
    ("incidents:close", "Close incidents", "incidents", "close", None),

    ("users:read", "View users", "users", "read", None),

    ("roles:read", "View roles", "roles", "read", None),
    ("roles:update", "Update roles", "roles", "update", None),
    ("permissions:read", "View permissions", "permissions", "read", None),
    ("permissions:manage", "Manage permissions", "permissions", "manage", None),

    ("work-orders:read", "View work orders", "work-orders", "read", None),
    ("work-orders:update", "Update work orders", "work-orders", "update", None),
    ("work-orders:delete", "Delete work orders", "work-orders", "delete", None),
    ("work-orders:complete", "Complete work orders", "work-orders", "complete", None),

    ("vics:read", "View VICs", "vics", "read", None),
    ("schedules:read", "View schedules", "schedules", "read", None),
]

ALL = "*"

# name -> (description, default_path, permission names)
ROLES = {
    "ADMINISTRADOR": (
        "Administrator with full system access (not related to VIC)",
        "/admin",
        ALL,
    ),
    "FSR": (
        "Field Service Representative",
        "/fsr",
        [
            "route:fsr",
            "incidents:read", "incidents:update",
            "work-orders:read", "work-orders:update", "work-orders:complete",
            "schedules:read", "users:read", "vics:read",
        ],
    ),
    "CLIENT": (
        "Client user, raises incidents from a VIC",
        "/client",
        ["route:client", "incidents:read", "incidents:create", "work-orders:read", "schedules:read"],
    ),
    "GUEST": (
        "Guest user, read-only access",
        "/guest",
        ["route:guest", "incidents:read", "work-orders:read", "schedules:read"],
    ),
}

INCIDENT_STATUSES = [
    ("ABIERTO", "Incident reported, not yet assigned"),
    ("EN_PROGRESO", "Incident assigned to an FSR"),
    ("CERRADO", "Incident resolved"),
]

INCIDENT_TYPES = [
    ("REPARACION", "Incident requiring repair"),
    ("MANTENIMIENTO", "Maintenance incident"),
    ("OTROS", "Other type of incident"),
]

DEMO_VIC = {
    "code": "VIC001",
    "name": "Centro de Verificación CDMX Principal",
    "address": "Av. Principal 123, CDMX",
}

# (name, email, role, belongs to the demo VIC)
DEMO_USERS = [
    ("Admin User", "admin@vic-tracker.local", "ADMINISTRADOR", False),
    ("FSR User", "fsr@vic-tracker.local", "FSR", True),
    ("Client User", "client@vic-tracker.local", "CLIENT", True),
    ("Guest User", "guest@vic-tracker.local", "GUEST", False),
]


# ═══════════════════════════════════════════════════════════════════
# SEEDERS
# ═══════════════════════════════════════════════════════════════════

def seed_permissions() -> dict[str, Permission]:
    by_name = {}
    for name, description, resource, action, route_path in PERMISSIONS:
        perm = Permission.query.filter_by(name=name).first()
        if perm is None:
            perm = Permission(
                name=name, description=description,
                resource=resource, action=action, route_path=route_path,
            )
            db.session.add(perm)
        by_name[name] = perm
    db.session.flush()
    return by_name


def seed_roles(permissions: dict[str, Permission]) -> dict[str, Role]:
    by_name = {}
    for name, (description, default_path, grants) in ROLES.items():
        role = Role.query.filter_by(name=name).first()
        if role is None:
            role = Role(name=name, description=description, default_path=default_path)
            db.session.add(role)
            db.session.flush()
        by_name[name] = role

        wanted = permissions.keys() if grants == ALL else grants
        granted = {rp.permission_id for rp in RolePermission.query.filter_by(role_id=role.id)}
        for perm_name in wanted:
            perm = permissions[perm_name]
            if perm.id not in granted:
                db.session.add(RolePermission(role_id=role.id, permission_id=perm.id))
    db.session.flush()
    return by_name


def seed_catalogs() -> None:
    for name, description in INCIDENT_STATUSES:
        if IncidentStatus.query.filter_by(name=name).first() is None:
            db.session.add(IncidentStatus(name=name, description=description))
    for name, description in INCIDENT_TYPES:
        if IncidentType.query.filter_by(name=name).first() is None:
            db.session.add(IncidentType(name=name, description=description))
    db.session.flush()


def seed_demo_data() -> dict:
    """
    Seed everything. Caller commits.

    Returns counts of rows present after seeding.
    """
    permissions = seed_permissions()
    roles = seed_roles(permissions)
    seed_catalogs()

    vic = VehicleInspectionCenter.query.filter_by(code=DEMO_VIC["code"]).first()
    if vic is None:
        vic = VehicleInspectionCenter(**DEMO_VIC)
        db.session.add(vic)
        db.session.flush()

    for name, email, role_name, in_vic in DEMO_USERS:
        if User.query.filter_by(email=email).first() is None:
            db.session.add(User(
                name=name,
                email=email,
                role_id=roles[role_name].id,
                vic_id=vic.id if in_vic else None,
            ))
    db.session.flush()

    counts = {
        "permissions": len(permissions),
        "roles": len(roles),
        "incident_statuses": IncidentStatus.query.count(),
        "incident_types": IncidentType.query.count(),
        "users": User.query.count(),
    }
    logger.info("Seeded demo data: %s", counts)
    return counts
