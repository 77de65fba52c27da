"""
VIC Incident Tracker
Blueprint registry and shared helpers.
"""

import logging

from flask import request

from vic_tracker.core.exceptions import (
    AlreadyStarted,
    InvalidAssignee,
    InvalidTransition,
    MissingCatalogEntry,
    NoFacilityAssigned,
    NotFoundError,
    StorageUnavailable,
    ValidationError,
)
from vic_tracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def paginate_query(query, default_limit=200, max_limit=1000):
    """Apply limit/offset pagination to a SQLAlchemy query.

    Query params:
        limit  - max items (default 200, capped at max_limit)
        offset - starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    total = query.count()
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    items = query.limit(limit).offset(offset).all()
    return items, total


def json_body() -> dict:
    """Request JSON object, or {} when the body is missing or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# ── Error handlers ────────────────────────────────────────────────────────────

# Most specific first; ValidationError subclasses get their own codes.
_VALIDATION_CODES = (
    (InvalidAssignee, E.INVALID_ASSIGNEE),
    (NoFacilityAssigned, E.NO_FACILITY),
    (AlreadyStarted, E.ALREADY_STARTED),
    (InvalidTransition, E.INVALID_TRANSITION),
)


def register_error_handlers(app):
    """Map the domain exception hierarchy onto api_error responses, once per type."""

    @app.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @app.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        code = E.BUSINESS_RULE
        for exc_type, exc_code in _VALIDATION_CODES:
            if isinstance(error, exc_type):
                code = exc_code
                break
        return api_error(code, str(error), details=error.details)

    @app.errorhandler(MissingCatalogEntry)
    def _handle_missing_catalog(error: MissingCatalogEntry):
        logger.warning("Catalog entry missing: %s/%s", error.catalog, error.name)
        return api_error(
            E.CONFLICT_STATE, str(error),
            details={"catalog": error.catalog, "name": error.name},
        )

    @app.errorhandler(StorageUnavailable)
    def _handle_storage(error: StorageUnavailable):
        logger.error("Storage unavailable on %s: %s", request.endpoint, error.__cause__)
        return api_error(E.STORAGE_UNAVAILABLE, "Storage temporarily unavailable")

    @app.errorhandler(404)
    def _handle_404(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def _handle_405(e):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(500)
    def _handle_500(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")
