"""
Roles Admin Blueprint

Endpoints:
  GET    /api/v1/admin/roles                    - List roles with permission names
  POST   /api/v1/admin/roles                    - Create role
  PUT    /api/v1/admin/roles/:id                - Update default path / description
  PUT    /api/v1/admin/roles/:id/permissions    - Replace the role's permission set
  DELETE /api/v1/admin/roles/:id                - Soft delete (refused while users hold it)
  GET    /api/v1/admin/permissions              - List active permissions
  DELETE /api/v1/admin/permissions/:id          - Revoke a permission system-wide

Every mutation goes through RoleAdminService, which invalidates the
permission cache after commit.
"""

import logging

from dataclasses import asdict

from flask import Blueprint, jsonify

from vic_tracker.blueprints import json_body
from vic_tracker.middleware.permission_required import require_any_permission, require_permission
from vic_tracker.services.permission_service import get_resolver, get_role_admin
from vic_tracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)

roles_bp = Blueprint("roles_bp", __name__, url_prefix="/api/v1/admin")


def _permission_ids(data):
    ids = data.get("permission_ids")
    if not isinstance(ids, list) or any(isinstance(i, bool) or not isinstance(i, int) for i in ids):
        return None
    return ids


# ═══════════════════════════════════════════════════════════════
# Roles
# ═══════════════════════════════════════════════════════════════

@roles_bp.route("/roles", methods=["GET"])
@require_any_permission("roles:read", "roles:update")
def list_roles():
    roles = get_role_admin().list_roles()
    return jsonify({"items": [r.to_dict(include_permissions=True) for r in roles]}), 200


@roles_bp.route("/roles", methods=["POST"])
@require_permission("roles:update")
def create_role():
    data = json_body()
    permission_ids = data.get("permission_ids", [])
    if permission_ids and _permission_ids(data) is None:
        return api_error(E.VALIDATION_INVALID, "permission_ids must be a list of integers")
    role = get_role_admin().create_role(
        name=data.get("name"),
        default_path=data.get("default_path") or "/",
        description=data.get("description"),
        permission_ids=permission_ids,
    )
    return jsonify(role.to_dict(include_permissions=True)), 201


@roles_bp.route("/roles/<int:role_id>", methods=["PUT"])
@require_permission("roles:update")
def update_role(role_id):
    data = json_body()
    role = get_role_admin().update_role(
        role_id,
        default_path=data.get("default_path"),
        description=data.get("description"),
    )
    return jsonify(role.to_dict(include_permissions=True)), 200


@roles_bp.route("/roles/<int:role_id>/permissions", methods=["PUT"])
@require_permission("roles:update")
def set_role_permissions(role_id):
    """Body: {"permission_ids": [1, 2, 3]}"""
    ids = _permission_ids(json_body())
    if ids is None:
        return api_error(E.VALIDATION_REQUIRED, "permission_ids must be a list of integers")
    role = get_role_admin().set_role_permissions(role_id, ids)
    return jsonify(role.to_dict(include_permissions=True)), 200


@roles_bp.route("/roles/<int:role_id>", methods=["DELETE"])
@require_permission("roles:update")
def delete_role(role_id):
    get_role_admin().deactivate_role(role_id)
    return jsonify({"message": "Role deleted"}), 200


# ═══════════════════════════════════════════════════════════════
# Permissions
# ═══════════════════════════════════════════════════════════════

@roles_bp.route("/permissions", methods=["GET"])
@require_any_permission("roles:read", "permissions:manage")
def list_permissions():
    perms = sorted(get_resolver().get_all_permissions(), key=lambda p: p.name)
    return jsonify({"items": [asdict(p) for p in perms]}), 200


@roles_bp.route("/permissions/<int:permission_id>", methods=["DELETE"])
@require_permission("permissions:manage")
def delete_permission(permission_id):
    get_role_admin().deactivate_permission(permission_id)
    return jsonify({"message": "Permission revoked"}), 200
