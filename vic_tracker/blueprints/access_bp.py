"""
Access Blueprint - health check and the caller's resolved access.

Endpoints:
  GET /api/v1/health                    - liveness + permission cache stats (no auth)
  GET /api/v1/me/access                 - role, default path, accessible routes
  GET /api/v1/me/access/check?path=...  - {"allowed": bool} for one route
"""

import logging

from flask import Blueprint, g, jsonify, request

from vic_tracker.middleware.permission_required import require_login
from vic_tracker.services.authorization import (
    get_accessible_routes,
    get_default_path,
    is_admin,
    normalize_route,
    role_can_access_route,
)
from vic_tracker.services.permission_service import get_cache
from vic_tracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)

access_bp = Blueprint("access_bp", __name__, url_prefix="/api/v1")


@access_bp.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok", "app": "VIC Incident Tracker", "permission_cache": get_cache().stats()}), 200


@access_bp.route("/me/access", methods=["GET"])
@require_login
def my_access():
    principal = g.principal
    role = principal.role
    return jsonify({
        "user_id": principal.id,
        "email": principal.email,
        "role": role.name,
        "is_admin": is_admin(principal),
        "default_path": get_default_path(role),
        "routes": get_accessible_routes(role),
        "permissions": sorted(p.name for p in role.permissions),
    }), 200


@access_bp.route("/me/access/check", methods=["GET"])
@require_login
def check_access():
    path = request.args.get("path")
    if not path:
        return api_error(E.VALIDATION_REQUIRED, "path query parameter is required")
    allowed = role_can_access_route(g.principal.role, path)
    return jsonify({"path": normalize_route(path), "allowed": allowed}), 200
