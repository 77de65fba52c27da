"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register one handler per type and
map them to HTTP status codes through ``utils.errors.api_error``.

Usage:
    from vic_tracker.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Incident", resource_id=42)
    raise AlreadyStarted(work_order_id="b1c...")

Mapping:
    NotFoundError        → 404
    ValidationError      → 422  (and its domain subclasses)
    MissingCatalogEntry  → 409
    StorageUnavailable   → 503
"""


class NotFoundError(Exception):
    """Raised when a requested role, incident or work order does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Role", "WorkOrder").
        resource_id: The key that was looked up. Included in logs and responses.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional structured context (entity id, attempted transition).
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidAssignee(ValidationError):
    """Target principal of an assignment is missing, inactive or not an FSR."""

    def __init__(self, incident_id: int, user_id: str, reason: str) -> None:
        self.incident_id = incident_id
        self.user_id = user_id
        super().__init__(
            f"Cannot assign incident {incident_id} to user {user_id}: {reason}",
            details={"incident_id": incident_id, "user_id": user_id, "transition": "assign"},
        )


class NoFacilityAssigned(ValidationError):
    """Client principal tried to report an incident without a VIC."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(
            f"User {user_id} has no inspection center assigned",
            details={"user_id": user_id, "transition": "create"},
        )


class AlreadyStarted(ValidationError):
    """Work order start requested twice."""

    def __init__(self, work_order_id: str) -> None:
        self.work_order_id = work_order_id
        super().__init__(
            f"Work order {work_order_id} has already been started",
            details={"work_order_id": work_order_id, "transition": "start"},
        )


class InvalidTransition(ValidationError):
    """Lifecycle action not allowed from the entity's current state."""

    def __init__(self, entity: str, entity_id: int | str, action: str, current: str | None) -> None:
        self.entity = entity
        self.entity_id = entity_id
        self.action = action
        self.current_status = current
        super().__init__(
            f"Cannot '{action}' {entity} {entity_id} (status={current})",
            details={"entity": entity, "id": entity_id, "transition": action, "status": current},
        )


class MissingCatalogEntry(Exception):
    """A status catalog row the lifecycle relies on does not exist.

    Assignment tolerates a missing EN_PROGRESO entry (logged, not raised).
    Creation without ABIERTO and closure without CERRADO raise it.
    """

    def __init__(self, catalog: str, name: str) -> None:
        self.catalog = catalog
        self.name = name
        super().__init__(f"{catalog} catalog has no entry named {name!r}")


class StorageUnavailable(Exception):
    """The persistence provider failed. Not retried; the cause is chained."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Storage unavailable during {operation}")
