"""initial_schema

Creates the incident tracker tables:
  - vics                 - vehicle inspection centers
  - roles, permissions   - role graph, joined by role_permissions
  - users                - one role each, optional VIC
  - incident_statuses, incident_types - catalogs
  - incidents            - priority 1..10, resolved_at set only when closed
  - work_orders          - one per FSR assignment

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _active_column():
    return sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true"))


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── VICs ──────────────────────────────────────────────────────────────
    if "vics" not in existing:
        op.create_table(
            "vics",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("code", sa.String(length=50), nullable=True),
            sa.Column("address", sa.String(length=300), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            _active_column(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("code"),
        )
        op.create_index("ix_vics_active", "vics", ["active"])

    # ── Roles / Permissions ───────────────────────────────────────────────
    if "roles" not in existing:
        op.create_table(
            "roles",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("default_path", sa.String(length=200), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            _active_column(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )
        op.create_index("ix_roles_active", "roles", ["active"])

    if "permissions" not in existing:
        op.create_table(
            "permissions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("resource", sa.String(length=100), nullable=True),
            sa.Column("action", sa.String(length=50), nullable=True),
            sa.Column("route_path", sa.String(length=200), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            _active_column(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )
        op.create_index("ix_permissions_active", "permissions", ["active"])

    if "role_permissions" not in existing:
        op.create_table(
            "role_permissions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.Column("permission_id", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["permission_id"], ["permissions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
        )

    # ── Users ─────────────────────────────────────────────────────────────
    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=True),
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.Column("vic_id", sa.String(length=36), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            _active_column(),
            sa.ForeignKeyConstraint(["role_id"], ["roles.id"]),
            sa.ForeignKeyConstraint(["vic_id"], ["vics.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )
        op.create_index("ix_users_role_id", "users", ["role_id"])
        op.create_index("ix_users_vic_id", "users", ["vic_id"])
        op.create_index("ix_users_active", "users", ["active"])

    # ── Catalogs ──────────────────────────────────────────────────────────
    for table in ("incident_statuses", "incident_types"):
        if table not in existing:
            op.create_table(
                table,
                sa.Column("id", sa.Integer(), nullable=False),
                sa.Column("name", sa.String(length=50), nullable=False),
                sa.Column("description", sa.String(length=200), nullable=True),
                _active_column(),
                sa.PrimaryKeyConstraint("id"),
                sa.UniqueConstraint("name"),
            )
            op.create_index(f"ix_{table}_active", table, ["active"])

    # ── Incidents ─────────────────────────────────────────────────────────
    if "incidents" not in existing:
        op.create_table(
            "incidents",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("priority", sa.Integer(), nullable=False),
            sa.Column("sla", sa.Integer(), nullable=False, comment="hours"),
            sa.Column("type_id", sa.Integer(), nullable=True),
            sa.Column("status_id", sa.Integer(), nullable=True),
            sa.Column("vic_id", sa.String(length=36), nullable=True),
            sa.Column("schedule_id", sa.String(length=36), nullable=True),
            sa.Column("reported_by_id", sa.String(length=36), nullable=True),
            sa.Column("reported_at", sa.DateTime(), nullable=False),
            sa.Column("resolved_at", sa.DateTime(), nullable=True,
                      comment="set exactly when status is CERRADO"),
            _active_column(),
            sa.CheckConstraint("priority BETWEEN 1 AND 10", name="ck_incident_priority"),
            sa.ForeignKeyConstraint(["type_id"], ["incident_types.id"]),
            sa.ForeignKeyConstraint(["status_id"], ["incident_statuses.id"]),
            sa.ForeignKeyConstraint(["vic_id"], ["vics.id"]),
            sa.ForeignKeyConstraint(["reported_by_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_incidents_status_id", "incidents", ["status_id"])
        op.create_index("ix_incidents_vic_id", "incidents", ["vic_id"])
        op.create_index("ix_incidents_active", "incidents", ["active"])

    # ── Work Orders ───────────────────────────────────────────────────────
    if "work_orders" not in existing:
        op.create_table(
            "work_orders",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("incident_id", sa.Integer(), nullable=False),
            sa.Column("assigned_to_id", sa.String(length=36), nullable=False),
            sa.Column("status", sa.String(length=30), nullable=False,
                      comment="PENDIENTE | EN_PROGRESO | COMPLETADA"),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("started_at", sa.DateTime(), nullable=True),
            sa.Column("finished_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            _active_column(),
            sa.ForeignKeyConstraint(["incident_id"], ["incidents.id"]),
            sa.ForeignKeyConstraint(["assigned_to_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_work_orders_incident_id", "work_orders", ["incident_id"])
        op.create_index("ix_work_orders_assigned_to_id", "work_orders", ["assigned_to_id"])
        op.create_index("ix_work_orders_active", "work_orders", ["active"])


def downgrade():
    for table in (
        "work_orders",
        "incidents",
        "incident_types",
        "incident_statuses",
        "users",
        "role_permissions",
        "permissions",
        "roles",
        "vics",
    ):
        op.drop_table(table)
