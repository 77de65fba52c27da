"""
Incident Lifecycle Service

Manages incident status with:
  - Creation in ABIERTO (client callers are pinned to their own VIC)
  - Assignment to an FSR (creates a work order, moves to EN_PROGRESO)
  - Admin status changes (resolved_at follows the closed status)
  - Closure (explicit, or via the work-order completion cascade)

States:
    ABIERTO → EN_PROGRESO → CERRADO (terminal for the cascade; admins may reopen)

Invariant kept by every write here:
    incident.resolved_at is not None  ⇔  incident status is CERRADO

Usage:
    from vic_tracker.services.incident_lifecycle import assign_to_fsr

    work_order = assign_to_fsr(incident_id=12, fsr_user_id="u-fsr-1")
"""

import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import false
from sqlalchemy.exc import SQLAlchemyError

from vic_tracker.core.exceptions import (
    InvalidAssignee,
    InvalidTransition,
    NoFacilityAssigned,
    NotFoundError,
    StorageUnavailable,
    ValidationError,
)
from vic_tracker.models import db
from vic_tracker.models.auth import Role, User
from vic_tracker.models.incident import (
    PRIORITY_MAX,
    PRIORITY_MIN,
    Incident,
    IncidentStatus,
    WorkOrder,
)
from vic_tracker.services.permission_store import RoleName, UserView
from vic_tracker.services.status_catalog import (
    IncidentStatusName,
    WorkOrderStatus,
    find_status,
    require_status,
    status_name_of,
)

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_SLA_HOURS = 24
AUTO_ASSIGN_NOTE = "Work order assigned automatically"

_UPDATABLE_FIELDS = ("title", "description", "priority", "sla", "type_id", "vic_id", "schedule_id")


def _utcnow():
    return datetime.now(timezone.utc)


def _commit(operation: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageUnavailable(operation) from exc


def _validate_priority(priority) -> int:
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise ValidationError("priority must be an integer", details={"priority": priority})
    if not PRIORITY_MIN <= priority <= PRIORITY_MAX:
        raise ValidationError(
            f"priority must be between {PRIORITY_MIN} and {PRIORITY_MAX}",
            details={"priority": priority},
        )
    return priority


def _validate_sla(sla) -> int:
    if isinstance(sla, bool) or not isinstance(sla, int) or sla <= 0:
        raise ValidationError("sla must be a positive number of hours", details={"sla": sla})
    return sla


def get_incident(incident_id: int, principal: UserView | None = None) -> Incident:
    """Active incident by id. Client principals only see their own VIC's incidents."""
    incident = db.session.get(Incident, incident_id)
    if incident is None or not incident.active:
        raise NotFoundError(resource="Incident", resource_id=incident_id)
    if principal is not None and principal.role.kind is RoleName.CLIENT:
        if principal.vic_id is None or incident.vic_id != principal.vic_id:
            raise NotFoundError(resource="Incident", resource_id=incident_id)
    return incident


def check_incident_invariant(incident: Incident) -> bool:
    """True when resolved_at is set exactly for closed incidents."""
    closed = status_name_of(incident.status_id) is IncidentStatusName.CERRADO
    return (incident.resolved_at is not None) == closed


# ═══════════════════════════════════════════════════════════════
# Create
# ═══════════════════════════════════════════════════════════════

def create_incident(
    principal: UserView,
    title: str,
    description: str,
    priority: int,
    sla: int | None = None,
    *,
    vic_id: str | None = None,
    type_id: int | None = None,
    schedule_id: str | None = None,
) -> Incident:
    """
    Report a new incident in ABIERTO.

    Client callers: sla defaults to CLIENT_DEFAULT_SLA_HOURS and vic_id is
    always the caller's own facility (NoFacilityAssigned when unset).
    Everyone else must pass sla explicitly.
    """
    if not title or not str(title).strip():
        raise ValidationError("title is required", details={"title": "required"})
    if not description or not str(description).strip():
        raise ValidationError("description is required", details={"description": "required"})
    priority = _validate_priority(priority)

    if principal.role.kind is RoleName.CLIENT:
        if principal.vic_id is None:
            raise NoFacilityAssigned(principal.id)
        vic_id = principal.vic_id
        if sla is None:
            sla = current_app.config.get("CLIENT_DEFAULT_SLA_HOURS", DEFAULT_CLIENT_SLA_HOURS)
    elif sla is None:
        raise ValidationError("sla is required", details={"sla": "required"})
    sla = _validate_sla(sla)

    open_status = require_status(IncidentStatusName.ABIERTO)

    incident = Incident(
        title=str(title).strip(),
        description=str(description).strip(),
        priority=priority,
        sla=sla,
        type_id=type_id,
        status_id=open_status.id,
        vic_id=vic_id,
        schedule_id=schedule_id,
        reported_by_id=principal.id,
        reported_at=_utcnow(),
        resolved_at=None,
    )
    db.session.add(incident)
    _commit("create_incident")
    logger.info(
        "Incident %d reported by %s (priority=%d, sla=%dh)", incident.id, principal.id, priority, sla,
        extra={"incident_id": incident.id},
    )
    return incident


# ═══════════════════════════════════════════════════════════════
# Assignment
# ═══════════════════════════════════════════════════════════════

def assign_to_fsr(incident_id: int, fsr_user_id: str) -> WorkOrder:
    """
    Create a PENDIENTE work order for an FSR and move the incident to EN_PROGRESO.

    A missing EN_PROGRESO catalog entry is tolerated: the work order is
    still created and the incident status is left as it was.
    """
    incident = get_incident(incident_id)
    if status_name_of(incident.status_id) is IncidentStatusName.CERRADO:
        raise InvalidTransition("incident", incident_id, "assign", IncidentStatusName.CERRADO.value)

    fsr = db.session.get(User, fsr_user_id)
    if fsr is None or not fsr.active:
        raise InvalidAssignee(incident_id, fsr_user_id, "user not found")
    if RoleName.parse(fsr.role.name) is not RoleName.FSR:
        raise InvalidAssignee(incident_id, fsr_user_id, "user is not an FSR")

    work_order = WorkOrder(
        incident_id=incident.id,
        assigned_to_id=fsr.id,
        status=WorkOrderStatus.PENDIENTE.value,
        notes=AUTO_ASSIGN_NOTE,
        started_at=None,
        finished_at=None,
    )
    db.session.add(work_order)

    in_progress = find_status(IncidentStatusName.EN_PROGRESO)
    if in_progress is not None:
        incident.status_id = in_progress.id
    else:
        logger.warning(
            "Incident %d assigned without status change: EN_PROGRESO missing from catalog",
            incident_id,
        )

    _commit("assign_to_fsr")
    logger.info(
        "Incident %d assigned to FSR %s (work order %s)", incident_id, fsr.id, work_order.id,
        extra={"incident_id": incident_id, "work_order_id": work_order.id},
    )
    return work_order


def list_fsr_users() -> list[User]:
    """Active users holding the FSR role, ordered by name."""
    return (
        User.query_active()
        .join(Role, User.role_id == Role.id)
        .filter(Role.name == RoleName.FSR.value, Role.active.is_(True))
        .order_by(User.name)
        .all()
    )


# ═══════════════════════════════════════════════════════════════
# Status changes
# ═══════════════════════════════════════════════════════════════

def mark_closed(incident: Incident, closed_status: IncidentStatus, when: datetime) -> None:
    """Apply the closed status in the current transaction (no commit)."""
    incident.status_id = closed_status.id
    incident.resolved_at = when


def change_status(incident_id: int, status_id: int) -> Incident:
    """
    Admin status change.

    Moving to CERRADO stamps resolved_at; any other target clears it,
    so reopening an incident un-resolves it.
    """
    incident = get_incident(incident_id)
    target = db.session.get(IncidentStatus, status_id)
    if target is None or not target.active:
        raise NotFoundError(resource="IncidentStatus", resource_id=status_id)

    previous = incident.status_id
    if IncidentStatusName.parse(target.name) is IncidentStatusName.CERRADO:
        mark_closed(incident, target, _utcnow())
    else:
        incident.status_id = target.id
        incident.resolved_at = None

    _commit("change_status")
    logger.info(
        "Incident %d status %s → %s", incident_id, previous, target.name,
        extra={"incident_id": incident_id},
    )
    return incident


def close_incident(incident_id: int) -> Incident:
    closed = require_status(IncidentStatusName.CERRADO)
    return change_status(incident_id, closed.id)


# ═══════════════════════════════════════════════════════════════
# Plain CRUD around the lifecycle
# ═══════════════════════════════════════════════════════════════

def list_incidents(principal: UserView, *, status: str | None = None, vic_id: str | None = None):
    """
    Active incidents, newest first, as a query (callers paginate).

    Client principals are scoped to their own VIC; an unaffiliated client sees nothing.
    """
    q = Incident.query_active()
    if principal.role.kind is RoleName.CLIENT:
        if principal.vic_id is None:
            return q.filter(false())
        q = q.filter(Incident.vic_id == principal.vic_id)
    elif vic_id:
        q = q.filter(Incident.vic_id == vic_id)
    if status:
        q = q.join(IncidentStatus, Incident.status_id == IncidentStatus.id).filter(IncidentStatus.name == status)
    return q.order_by(Incident.reported_at.desc(), Incident.id.desc())


def update_incident(incident_id: int, data: dict) -> Incident:
    """Edit descriptive fields. Status and timestamps go through the lifecycle functions."""
    incident = get_incident(incident_id)
    changes = {}
    for field in _UPDATABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field == "priority":
            value = _validate_priority(value)
        elif field == "sla":
            value = _validate_sla(value)
        elif field in ("title", "description"):
            if not value or not str(value).strip():
                raise ValidationError(f"{field} is required", details={field: "required"})
            value = str(value).strip()
        changes[field] = value
    for field, value in changes.items():
        setattr(incident, field, value)
    _commit("update_incident")
    return incident


def deactivate_incident(incident_id: int) -> None:
    incident = get_incident(incident_id)
    incident.deactivate()
    _commit("deactivate_incident")
    logger.info("Incident %d deactivated", incident_id)
