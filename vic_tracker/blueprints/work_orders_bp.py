"""
Work Orders Blueprint

Endpoints:
  GET    /api/v1/work-orders                - Active orders (admin: all; ?incident_id=&status=)
  GET    /api/v1/work-orders/mine           - Active orders assigned to the caller
  GET    /api/v1/work-orders/:id            - Work order detail
  POST   /api/v1/work-orders/:id/start      - PENDIENTE → EN_PROGRESO
  POST   /api/v1/work-orders/:id/complete   - → COMPLETADA (may close the incident)
  POST   /api/v1/work-orders/:id/reopen     - COMPLETADA → EN_PROGRESO
  DELETE /api/v1/work-orders/:id            - Soft delete (may close the incident)

FSR callers can only see and act on orders assigned to them; client callers
only see orders on incidents of their own VIC.
"""

import logging

from flask import Blueprint, g, jsonify, request

from vic_tracker.blueprints import json_body, paginate_query
from vic_tracker.middleware.permission_required import require_permission
from vic_tracker.services import work_order_lifecycle

logger = logging.getLogger(__name__)

work_orders_bp = Blueprint("work_orders_bp", __name__, url_prefix="/api/v1/work-orders")


@work_orders_bp.route("", methods=["GET"])
@require_permission("work-orders:read")
def list_work_orders():
    q = work_order_lifecycle.list_work_orders(
        g.principal,
        incident_id=request.args.get("incident_id", type=int),
        status=request.args.get("status"),
    )
    items, total = paginate_query(q)
    return jsonify({"items": [wo.to_dict() for wo in items], "total": total}), 200


@work_orders_bp.route("/mine", methods=["GET"])
@require_permission("work-orders:read")
def list_mine():
    items, total = paginate_query(work_order_lifecycle.list_my_work_orders(g.principal))
    return jsonify({"items": [wo.to_dict() for wo in items], "total": total}), 200


@work_orders_bp.route("/<work_order_id>", methods=["GET"])
@require_permission("work-orders:read")
def get_work_order(work_order_id):
    wo = work_order_lifecycle.get_work_order(work_order_id, g.principal)
    return jsonify(wo.to_dict()), 200


@work_orders_bp.route("/<work_order_id>/start", methods=["POST"])
@require_permission("work-orders:update")
def start_work_order(work_order_id):
    work_order_lifecycle.get_work_order(work_order_id, g.principal)
    wo = work_order_lifecycle.start_work_order(work_order_id)
    return jsonify(wo.to_dict()), 200


@work_orders_bp.route("/<work_order_id>/complete", methods=["POST"])
@require_permission("work-orders:complete")
def complete_work_order(work_order_id):
    """Body (optional): {"notes": "..."}"""
    work_order_lifecycle.get_work_order(work_order_id, g.principal)
    wo = work_order_lifecycle.complete_work_order(work_order_id, notes=json_body().get("notes"))
    body = wo.to_dict()
    body["incident"] = wo.incident.to_dict()
    return jsonify(body), 200


@work_orders_bp.route("/<work_order_id>/reopen", methods=["POST"])
@require_permission("work-orders:update")
def reopen_work_order(work_order_id):
    work_order_lifecycle.get_work_order(work_order_id, g.principal)
    wo = work_order_lifecycle.reopen_work_order(work_order_id)
    return jsonify(wo.to_dict()), 200


@work_orders_bp.route("/<work_order_id>", methods=["DELETE"])
@require_permission("work-orders:delete")
def delete_work_order(work_order_id):
    work_order_lifecycle.delete_work_order(work_order_id)
    return jsonify({"message": "Work order deleted"}), 200
