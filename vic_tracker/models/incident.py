"""
Incident Models - status/type catalogs, incidents, work orders.

Lifecycle columns are owned by the lifecycle services:
  - Incident.status_id / resolved_at   → services/incident_lifecycle.py
  - WorkOrder.status / started_at / finished_at → services/work_order_lifecycle.py

Blueprints never write those columns directly.
"""

import uuid
from datetime import datetime, timezone

from vic_tracker.models import db
from vic_tracker.models.soft_delete import ActiveMixin

PRIORITY_MIN = 1
PRIORITY_MAX = 10


def _iso(value):
    return value.isoformat() if value else None


# ═══════════════════════════════════════════════════════════════
# 1. CATALOGS
# ═══════════════════════════════════════════════════════════════
class IncidentStatus(ActiveMixin, db.Model):
    __tablename__ = "incident_statuses"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)  # ABIERTO, EN_PROGRESO, CERRADO
    description = db.Column(db.String(200))

    def to_dict(self):
        return {"id": self.id, "name": self.name, "description": self.description}


class IncidentType(ActiveMixin, db.Model):
    __tablename__ = "incident_types"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)
    description = db.Column(db.String(200))

    def to_dict(self):
        return {"id": self.id, "name": self.name, "description": self.description}


# ═══════════════════════════════════════════════════════════════
# 2. INCIDENTS
# ═══════════════════════════════════════════════════════════════
class Incident(ActiveMixin, db.Model):
    __tablename__ = "incidents"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    priority = db.Column(db.Integer, nullable=False, default=5)  # 1..10, higher = more urgent
    sla = db.Column(db.Integer, nullable=False, default=24)  # hours
    type_id = db.Column(db.Integer, db.ForeignKey("incident_types.id"), nullable=True)
    status_id = db.Column(db.Integer, db.ForeignKey("incident_statuses.id"), nullable=True, index=True)
    vic_id = db.Column(db.String(36), db.ForeignKey("vics.id"), nullable=True, index=True)
    schedule_id = db.Column(db.String(36), nullable=True)
    reported_by_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    reported_at = db.Column(db.DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    resolved_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.CheckConstraint(
            f"priority BETWEEN {PRIORITY_MIN} AND {PRIORITY_MAX}", name="ck_incident_priority"
        ),
    )

    type = db.relationship("IncidentType")
    status = db.relationship("IncidentStatus")
    vic = db.relationship("VehicleInspectionCenter")
    reported_by = db.relationship("User", foreign_keys=[reported_by_id])
    work_orders = db.relationship("WorkOrder", back_populates="incident", lazy="dynamic")

    def to_dict(self, include_work_orders=False):
        d = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "sla": self.sla,
            "type_id": self.type_id,
            "type": self.type.name if self.type else None,
            "status_id": self.status_id,
            "status": self.status.name if self.status else None,
            "vic_id": self.vic_id,
            "schedule_id": self.schedule_id,
            "reported_by_id": self.reported_by_id,
            "reported_at": _iso(self.reported_at),
            "resolved_at": _iso(self.resolved_at),
            "active": self.active,
        }
        if include_work_orders:
            d["work_orders"] = [
                wo.to_dict() for wo in
                self.work_orders.filter_by(active=True).order_by(WorkOrder.created_at.desc())
            ]
        return d


# ═══════════════════════════════════════════════════════════════
# 3. WORK ORDERS
# ═══════════════════════════════════════════════════════════════
class WorkOrder(ActiveMixin, db.Model):
    __tablename__ = "work_orders"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    incident_id = db.Column(
        db.Integer, db.ForeignKey("incidents.id"), nullable=False, index=True
    )
    assigned_to_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    status = db.Column(db.String(30), nullable=False, default="PENDIENTE")
    notes = db.Column(db.Text)
    started_at = db.Column(db.DateTime, nullable=True)
    finished_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    incident = db.relationship("Incident", back_populates="work_orders")
    assigned_to = db.relationship("User", foreign_keys=[assigned_to_id])

    def to_dict(self):
        return {
            "id": self.id,
            "incident_id": self.incident_id,
            "assigned_to_id": self.assigned_to_id,
            "status": self.status,
            "notes": self.notes,
            "started_at": _iso(self.started_at),
            "finished_at": _iso(self.finished_at),
            "created_at": _iso(self.created_at),
            "active": self.active,
        }
