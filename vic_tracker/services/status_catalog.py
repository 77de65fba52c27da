"""
Status Catalog - typed view over the incident status table and work-order labels.

The catalog stores statuses by human-readable name. This module converts
those names into closed enums once, so lifecycle code compares enum members
instead of strings.

Usage:
    from vic_tracker.services.status_catalog import IncidentStatusName, find_status

    status = find_status(IncidentStatusName.EN_PROGRESO)   # IncidentStatus | None
    closed = require_status(IncidentStatusName.CERRADO)    # raises MissingCatalogEntry
"""

import enum
import logging

from sqlalchemy.exc import SQLAlchemyError

from vic_tracker.core.exceptions import MissingCatalogEntry, StorageUnavailable
from vic_tracker.models import db
from vic_tracker.models.incident import IncidentStatus

logger = logging.getLogger(__name__)


class IncidentStatusName(str, enum.Enum):
    ABIERTO = "ABIERTO"
    EN_PROGRESO = "EN_PROGRESO"
    CERRADO = "CERRADO"

    @classmethod
    def parse(cls, name):
        """Return the member for a catalog name, or None for statuses outside the lifecycle."""
        try:
            return cls(name)
        except ValueError:
            return None


class WorkOrderStatus(str, enum.Enum):
    PENDIENTE = "PENDIENTE"
    EN_PROGRESO = "EN_PROGRESO"
    COMPLETADA = "COMPLETADA"


def find_status(name: IncidentStatusName) -> IncidentStatus | None:
    """Look up an active incident status by enum member; None when missing."""
    try:
        status = IncidentStatus.query_active().filter_by(name=name.value).first()
    except SQLAlchemyError as exc:
        raise StorageUnavailable(f"status lookup {name.value}") from exc
    if status is None:
        logger.warning("Incident status catalog is missing %s", name.value)
    return status


def require_status(name: IncidentStatusName) -> IncidentStatus:
    """Like find_status, but a missing entry is fatal."""
    status = find_status(name)
    if status is None:
        raise MissingCatalogEntry("incident_status", name.value)
    return status


def status_name_of(status_id: int | None) -> IncidentStatusName | None:
    """Resolve a status id to its lifecycle enum member (None if unknown or outside the lifecycle)."""
    if status_id is None:
        return None
    try:
        status = db.session.get(IncidentStatus, status_id)
    except SQLAlchemyError as exc:
        raise StorageUnavailable(f"status lookup id={status_id}") from exc
    return IncidentStatusName.parse(status.name) if status else None
