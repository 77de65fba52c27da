"""
Work Order Lifecycle Service

Transitions (status label ⇔ timestamps):
    PENDIENTE    started_at None,     finished_at None
    EN_PROGRESO  started_at set,      finished_at None
    COMPLETADA   started_at set,      finished_at set (started_at <= finished_at)

Business Rule (closure cascade): after a work order is completed or
soft-deleted, re-evaluate its incident. If the incident has at least one
active work order and every active work order has finished_at, the incident
is closed through ``incident_lifecycle.mark_closed``.

Transaction boundary: the incident row is locked (SELECT ... FOR UPDATE on
backends that support it) before the work order is touched, and the
work-order write, the "all finished?" read and the conditional close commit
together. Two orders completing at once serialize on the incident row, so
the cascade fires exactly once.

Usage:
    from vic_tracker.services.work_order_lifecycle import complete_work_order

    wo = complete_work_order("3f0c...", notes="Replaced air filter")
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import false
from sqlalchemy.exc import SQLAlchemyError

from vic_tracker.core.exceptions import (
    AlreadyStarted,
    InvalidTransition,
    NotFoundError,
    StorageUnavailable,
    ValidationError,
)
from vic_tracker.models import db
from vic_tracker.models.incident import Incident, WorkOrder
from vic_tracker.services.incident_lifecycle import mark_closed
from vic_tracker.services.permission_store import RoleName, UserView
from vic_tracker.services.status_catalog import (
    IncidentStatusName,
    WorkOrderStatus,
    find_status,
    status_name_of,
)

logger = logging.getLogger(__name__)


def _utcnow():
    return datetime.now(timezone.utc)


def _commit(operation: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageUnavailable(operation) from exc


def _visible_to(wo: WorkOrder, principal: UserView) -> bool:
    kind = principal.role.kind
    if kind is RoleName.FSR:
        return wo.assigned_to_id == principal.id
    if kind is RoleName.CLIENT:
        return principal.vic_id is not None and wo.incident.vic_id == principal.vic_id
    return True


def get_work_order(work_order_id: str, principal: UserView | None = None) -> WorkOrder:
    """
    Active work order by id.

    FSR principals only see orders assigned to them; client principals only
    see orders on incidents of their own VIC. Anything else is a 404.
    """
    wo = db.session.get(WorkOrder, work_order_id)
    if wo is None or not wo.active:
        raise NotFoundError(resource="WorkOrder", resource_id=work_order_id)
    if principal is not None and not _visible_to(wo, principal):
        raise NotFoundError(resource="WorkOrder", resource_id=work_order_id)
    return wo


def check_work_order_invariant(wo: WorkOrder) -> bool:
    """Status label agrees with the timestamps and started_at <= finished_at."""
    if wo.finished_at is not None:
        return (
            wo.status == WorkOrderStatus.COMPLETADA.value
            and wo.started_at is not None
            and wo.started_at <= wo.finished_at
        )
    if wo.started_at is not None:
        return wo.status == WorkOrderStatus.EN_PROGRESO.value
    return wo.status == WorkOrderStatus.PENDIENTE.value


def list_my_work_orders(principal: UserView):
    """Active work orders assigned to the principal, newest first (query)."""
    return (
        WorkOrder.query_active()
        .filter(WorkOrder.assigned_to_id == principal.id)
        .order_by(WorkOrder.created_at.desc())
    )


def list_work_orders(principal: UserView, *, incident_id: int | None = None, status: str | None = None):
    """
    Active work orders across incidents, newest first (query).

    Administrators see every order. FSR principals are narrowed to their own
    orders and client principals to their VIC's incidents, the same rules
    as get_work_order.
    """
    if status is not None and status not in {s.value for s in WorkOrderStatus}:
        raise ValidationError(
            f"Unknown work order status {status!r}",
            details={"status": sorted(s.value for s in WorkOrderStatus)},
        )

    q = WorkOrder.query_active()
    kind = principal.role.kind
    if kind is RoleName.FSR:
        q = q.filter(WorkOrder.assigned_to_id == principal.id)
    elif kind is RoleName.CLIENT:
        if principal.vic_id is None:
            return q.filter(false())
        q = q.join(Incident, WorkOrder.incident_id == Incident.id).filter(Incident.vic_id == principal.vic_id)
    if incident_id is not None:
        q = q.filter(WorkOrder.incident_id == incident_id)
    if status is not None:
        q = q.filter(WorkOrder.status == status)
    return q.order_by(WorkOrder.created_at.desc(), WorkOrder.id)


# ═══════════════════════════════════════════════════════════════
# Cascade
# ═══════════════════════════════════════════════════════════════

def _lock_incident(incident_id: int) -> Incident:
    try:
        return (
            db.session.query(Incident)
            .filter(Incident.id == incident_id)
            .populate_existing()
            .with_for_update()
            .one()
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageUnavailable(f"lock incident {incident_id}") from exc


def _close_incident_if_complete(incident: Incident) -> bool:
    """
    Close the incident when every active work order has finished.

    Returns True if this call closed it. Runs inside the caller's
    transaction; the caller commits.
    """
    if status_name_of(incident.status_id) is IncidentStatusName.CERRADO:
        return False

    db.session.flush()
    orders = WorkOrder.query_active().filter(WorkOrder.incident_id == incident.id).all()
    if not orders:
        # Zero-work-order incidents are only closed by an explicit admin action.
        return False
    if any(o.finished_at is None for o in orders):
        return False

    closed = find_status(IncidentStatusName.CERRADO)
    if closed is None:
        logger.warning(
            "Incident %d has all work orders finished but CERRADO is missing from catalog",
            incident.id,
        )
        return False

    mark_closed(incident, closed, _utcnow())
    logger.info("Incident %d closed by cascade (%d work orders finished)", incident.id, len(orders))
    return True


# ═══════════════════════════════════════════════════════════════
# Transitions
# ═══════════════════════════════════════════════════════════════

def start_work_order(work_order_id: str) -> WorkOrder:
    """PENDIENTE → EN_PROGRESO. A second start is rejected with AlreadyStarted."""
    wo = get_work_order(work_order_id)
    if wo.started_at is not None:
        raise AlreadyStarted(wo.id)

    wo.started_at = _utcnow()
    wo.status = WorkOrderStatus.EN_PROGRESO.value
    _commit("start_work_order")
    logger.info("Work order %s started", wo.id, extra={"work_order_id": wo.id})
    return wo


def complete_work_order(work_order_id: str, notes: str | None = None) -> WorkOrder:
    """
    → COMPLETADA, then run the closure cascade in the same transaction.

    An order completed without a prior start gets started_at = finished_at.
    """
    wo = get_work_order(work_order_id)
    incident = _lock_incident(wo.incident_id)
    db.session.refresh(wo)
    if wo.finished_at is not None:
        current = wo.status
        db.session.rollback()  # release the incident row lock
        raise InvalidTransition("work_order", work_order_id, "complete", current)

    now = _utcnow()
    if wo.started_at is None:
        wo.started_at = now
    wo.finished_at = now
    wo.status = WorkOrderStatus.COMPLETADA.value
    if notes is not None:
        wo.notes = notes

    closed = _close_incident_if_complete(incident)
    _commit("complete_work_order")
    logger.info(
        "Work order %s completed (incident %d closed=%s)", wo.id, incident.id, closed,
        extra={"work_order_id": wo.id, "incident_id": incident.id},
    )
    return wo


def reopen_work_order(work_order_id: str) -> WorkOrder:
    """
    COMPLETADA → EN_PROGRESO.

    The parent incident is left as it is; an incident already closed by the
    cascade stays closed until an admin changes its status.
    """
    wo = get_work_order(work_order_id)
    if wo.finished_at is None:
        raise InvalidTransition("work_order", wo.id, "reopen", wo.status)

    wo.finished_at = None
    wo.status = WorkOrderStatus.EN_PROGRESO.value
    _commit("reopen_work_order")
    logger.info("Work order %s reopened", wo.id, extra={"work_order_id": wo.id})
    return wo


def delete_work_order(work_order_id: str) -> None:
    """
    Soft delete. The order stops counting toward the cascade, so removing the
    last unfinished order can close the incident.
    """
    wo = get_work_order(work_order_id)
    incident = _lock_incident(wo.incident_id)
    db.session.refresh(wo)
    if not wo.active:
        db.session.rollback()
        raise NotFoundError(resource="WorkOrder", resource_id=work_order_id)

    wo.deactivate()
    closed = _close_incident_if_complete(incident)
    _commit("delete_work_order")
    logger.info(
        "Work order %s deleted (incident %d closed=%s)", wo.id, incident.id, closed,
        extra={"work_order_id": wo.id, "incident_id": incident.id},
    )
