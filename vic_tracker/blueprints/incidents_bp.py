"""
Incidents Blueprint

Endpoints:
  GET    /api/v1/incidents                  - List incidents (client users: own VIC only)
  POST   /api/v1/incidents                  - Report a new incident (status ABIERTO)
  GET    /api/v1/incidents/:id              - Incident detail with active work orders
  PUT    /api/v1/incidents/:id              - Edit descriptive fields
  DELETE /api/v1/incidents/:id              - Soft delete
  POST   /api/v1/incidents/:id/assign       - Assign to an FSR (creates a work order)
  PATCH  /api/v1/incidents/:id/status       - Admin status change
  POST   /api/v1/incidents/:id/close        - Close explicitly
  GET    /api/v1/incidents/fsr-users        - Users eligible for assignment
"""

import logging

from flask import Blueprint, g, jsonify, request

from vic_tracker.blueprints import json_body, paginate_query
from vic_tracker.middleware.permission_required import require_all_permissions, require_permission
from vic_tracker.services import incident_lifecycle
from vic_tracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)

incidents_bp = Blueprint("incidents_bp", __name__, url_prefix="/api/v1/incidents")


# ═══════════════════════════════════════════════════════════════
# Incident CRUD
# ═══════════════════════════════════════════════════════════════

@incidents_bp.route("", methods=["GET"])
@require_permission("incidents:read")
def list_incidents():
    q = incident_lifecycle.list_incidents(
        g.principal,
        status=request.args.get("status"),
        vic_id=request.args.get("vic_id"),
    )
    items, total = paginate_query(q)
    return jsonify({"items": [i.to_dict() for i in items], "total": total}), 200


@incidents_bp.route("", methods=["POST"])
@require_permission("incidents:create")
def create_incident():
    """Report an incident. Client users are pinned to their VIC and the default SLA."""
    data = json_body()
    incident = incident_lifecycle.create_incident(
        g.principal,
        title=data.get("title"),
        description=data.get("description"),
        priority=data.get("priority"),
        sla=data.get("sla"),
        vic_id=data.get("vic_id"),
        type_id=data.get("type_id"),
        schedule_id=data.get("schedule_id"),
    )
    return jsonify(incident.to_dict()), 201


@incidents_bp.route("/<int:incident_id>", methods=["GET"])
@require_permission("incidents:read")
def get_incident(incident_id):
    incident = incident_lifecycle.get_incident(incident_id, g.principal)
    return jsonify(incident.to_dict(include_work_orders=True)), 200


@incidents_bp.route("/<int:incident_id>", methods=["PUT"])
@require_permission("incidents:update")
def update_incident(incident_id):
    incident_lifecycle.get_incident(incident_id, g.principal)
    incident = incident_lifecycle.update_incident(incident_id, json_body())
    return jsonify(incident.to_dict()), 200


@incidents_bp.route("/<int:incident_id>", methods=["DELETE"])
@require_permission("incidents:delete")
def delete_incident(incident_id):
    incident_lifecycle.deactivate_incident(incident_id)
    return jsonify({"message": "Incident deleted"}), 200


# ═══════════════════════════════════════════════════════════════
# Lifecycle
# ═══════════════════════════════════════════════════════════════

@incidents_bp.route("/<int:incident_id>/assign", methods=["POST"])
@require_permission("incidents:assign")
def assign_incident(incident_id):
    """Assign to an FSR. Body: {"fsr_user_id": "..."}"""
    fsr_user_id = json_body().get("fsr_user_id")
    if not fsr_user_id:
        return api_error(E.VALIDATION_REQUIRED, "fsr_user_id is required")
    work_order = incident_lifecycle.assign_to_fsr(incident_id, fsr_user_id)
    return jsonify(work_order.to_dict()), 201


@incidents_bp.route("/<int:incident_id>/status", methods=["PATCH"])
@require_all_permissions("incidents:update", "incidents:close")
def change_status(incident_id):
    """Body: {"status_id": 3}. Can close or reopen, so it also needs incidents:close."""
    status_id = json_body().get("status_id")
    if isinstance(status_id, bool) or not isinstance(status_id, int):
        return api_error(E.VALIDATION_REQUIRED, "status_id (integer) is required")
    incident = incident_lifecycle.change_status(incident_id, status_id)
    return jsonify(incident.to_dict()), 200


@incidents_bp.route("/<int:incident_id>/close", methods=["POST"])
@require_permission("incidents:close")
def close_incident(incident_id):
    incident = incident_lifecycle.close_incident(incident_id)
    return jsonify(incident.to_dict()), 200


@incidents_bp.route("/fsr-users", methods=["GET"])
@require_permission("incidents:assign")
def list_fsr_users():
    return jsonify({"items": [u.to_dict() for u in incident_lifecycle.list_fsr_users()]}), 200
