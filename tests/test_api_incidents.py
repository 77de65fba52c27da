"""
API tests - incidents, work orders, access and role administration endpoints:
  - authentication (401) and permission gates (403)
  - full lifecycle over HTTP: report → assign → start → complete → CERRADO
  - error mapping (404 / 409 / 422 / 503)
  - role mutations take effect on the next request
  - work-order visibility per role and the cross-incident list
"""

import pytest

from vic_tracker.core.exceptions import StorageUnavailable
from vic_tracker.models import db
from vic_tracker.models.auth import Permission, Role, VehicleInspectionCenter
from vic_tracker.services import incident_lifecycle


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════


def _create(client, headers, **overrides):
    payload = {"title": "Analyzer down", "description": "Gas analyzer offline", "priority": 6}
    payload.update(overrides)
    return client.post("/api/v1/incidents", json=payload, headers=headers)


@pytest.fixture()
def as_role(seeded, auth_headers):
    """Headers for the demo user holding the given role."""
    def _as(role_name):
        return auth_headers(seeded.user(role_name))
    return _as


# ═══════════════════════════════════════════════════════════════════════════
# Authentication
# ═══════════════════════════════════════════════════════════════════════════


class TestAuthentication:

    def test_health_needs_no_token(self, client):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "ok"
        assert body["permission_cache"]["ttl_seconds"] == 300

    def test_missing_token(self, client, seeded):
        res = client.get("/api/v1/incidents")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_garbage_token(self, client, seeded):
        res = client.get("/api/v1/incidents", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401

    def test_deactivated_user(self, client, seeded, auth_headers):
        fsr = seeded.user("FSR")
        headers = auth_headers(fsr)
        fsr.deactivate()
        db.session.commit()
        res = client.get("/api/v1/incidents", headers=headers)
        assert res.status_code == 401

    def test_missing_permission(self, client, as_role):
        res = _create(client, as_role("GUEST"))
        assert res.status_code == 403
        body = res.get_json()
        assert body["code"] == "ERR_FORBIDDEN"
        assert body["details"]["required"] == "incidents:create"


# ═══════════════════════════════════════════════════════════════════════════
# Access
# ═══════════════════════════════════════════════════════════════════════════


class TestAccess:

    def test_fsr_access(self, client, as_role):
        res = client.get("/api/v1/me/access", headers=as_role("FSR"))
        assert res.status_code == 200
        body = res.get_json()
        assert body["role"] == "FSR"
        assert body["default_path"] == "/fsr"
        assert body["routes"] == ["/fsr", "/incidents"]
        assert body["is_admin"] is False

    def test_route_check(self, client, as_role):
        fsr = as_role("FSR")
        assert client.get("/api/v1/me/access/check?path=/fsr/orders/", headers=fsr).get_json()["allowed"] is True
        assert client.get("/api/v1/me/access/check?path=/admin", headers=fsr).get_json()["allowed"] is False
        admin = as_role("ADMINISTRADOR")
        assert client.get("/api/v1/me/access/check?path=/fsr", headers=admin).get_json()["allowed"] is True

    def test_route_check_requires_path(self, client, as_role):
        res = client.get("/api/v1/me/access/check", headers=as_role("CLIENT"))
        assert res.status_code == 400


# ═══════════════════════════════════════════════════════════════════════════
# Incident lifecycle over HTTP
# ═══════════════════════════════════════════════════════════════════════════


class TestIncidentEndpoints:

    def test_client_reports_incident(self, client, seeded, as_role):
        res = _create(client, as_role("CLIENT"))
        assert res.status_code == 201
        body = res.get_json()
        assert body["status"] == "ABIERTO"
        assert body["sla"] == 24
        assert body["vic_id"] == seeded.vic.id
        assert body["resolved_at"] is None

    def test_admin_must_send_sla(self, client, as_role):
        res = _create(client, as_role("ADMINISTRADOR"))
        assert res.status_code == 422
        assert _create(client, as_role("ADMINISTRADOR"), sla=12).status_code == 201

    def test_invalid_priority(self, client, as_role):
        res = _create(client, as_role("CLIENT"), priority=11)
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_BUSINESS_RULE"

    def test_full_lifecycle(self, client, seeded, as_role):
        incident = _create(client, as_role("CLIENT")).get_json()
        admin, fsr = as_role("ADMINISTRADOR"), as_role("FSR")

        res = client.post(
            f"/api/v1/incidents/{incident['id']}/assign",
            json={"fsr_user_id": seeded.user("FSR").id}, headers=admin,
        )
        assert res.status_code == 201
        wo = res.get_json()
        assert wo["status"] == "PENDIENTE"

        detail = client.get(f"/api/v1/incidents/{incident['id']}", headers=admin).get_json()
        assert detail["status"] == "EN_PROGRESO"
        assert [w["id"] for w in detail["work_orders"]] == [wo["id"]]

        mine = client.get("/api/v1/work-orders/mine", headers=fsr).get_json()
        assert mine["total"] == 1

        res = client.post(f"/api/v1/work-orders/{wo['id']}/start", headers=fsr)
        assert res.status_code == 200
        assert res.get_json()["status"] == "EN_PROGRESO"

        res = client.post(f"/api/v1/work-orders/{wo['id']}/complete", json={"notes": "Sensor swapped"}, headers=fsr)
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "COMPLETADA"
        assert body["incident"]["status"] == "CERRADO"
        assert body["incident"]["resolved_at"] is not None

    def test_start_twice(self, client, seeded, as_role):
        incident = _create(client, as_role("CLIENT")).get_json()
        wo = client.post(
            f"/api/v1/incidents/{incident['id']}/assign",
            json={"fsr_user_id": seeded.user("FSR").id}, headers=as_role("ADMINISTRADOR"),
        ).get_json()
        fsr = as_role("FSR")
        client.post(f"/api/v1/work-orders/{wo['id']}/start", headers=fsr)
        res = client.post(f"/api/v1/work-orders/{wo['id']}/start", headers=fsr)
        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "ERR_ALREADY_STARTED"
        assert body["details"]["work_order_id"] == wo["id"]

    def test_complete_twice(self, client, seeded, as_role):
        incident = _create(client, as_role("CLIENT")).get_json()
        wo = client.post(
            f"/api/v1/incidents/{incident['id']}/assign",
            json={"fsr_user_id": seeded.user("FSR").id}, headers=as_role("ADMINISTRADOR"),
        ).get_json()
        fsr = as_role("FSR")
        client.post(f"/api/v1/work-orders/{wo['id']}/complete", headers=fsr)
        res = client.post(f"/api/v1/work-orders/{wo['id']}/complete", headers=fsr)
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_INVALID_TRANSITION"

    def test_assign_to_client_user(self, client, seeded, as_role):
        incident = _create(client, as_role("CLIENT")).get_json()
        res = client.post(
            f"/api/v1/incidents/{incident['id']}/assign",
            json={"fsr_user_id": seeded.user("CLIENT").id}, headers=as_role("ADMINISTRADOR"),
        )
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_INVALID_ASSIGNEE"

    def test_assign_requires_body(self, client, seeded, as_role):
        incident = _create(client, as_role("CLIENT")).get_json()
        res = client.post(f"/api/v1/incidents/{incident['id']}/assign", json={}, headers=as_role("ADMINISTRADOR"))
        assert res.status_code == 400

    def test_client_cannot_see_other_vic(self, client, seeded, as_role):
        other = VehicleInspectionCenter(name="Other", code="VIC999")
        db.session.add(other)
        db.session.commit()
        theirs = _create(client, as_role("ADMINISTRADOR"), sla=12, vic_id=other.id).get_json()
        res = client.get(f"/api/v1/incidents/{theirs['id']}", headers=as_role("CLIENT"))
        assert res.status_code == 404
        listed = client.get("/api/v1/incidents", headers=as_role("CLIENT")).get_json()
        assert listed["total"] == 0

    def test_change_status_and_close(self, client, seeded, as_role):
        admin = as_role("ADMINISTRADOR")
        incident = _create(client, as_role("CLIENT")).get_json()
        res = client.patch(
            f"/api/v1/incidents/{incident['id']}/status",
            json={"status_id": seeded.status("EN_PROGRESO").id}, headers=admin,
        )
        assert res.get_json()["status"] == "EN_PROGRESO"
        res = client.post(f"/api/v1/incidents/{incident['id']}/close", headers=admin)
        assert res.status_code == 200
        assert res.get_json()["resolved_at"] is not None

    def test_fsr_cannot_change_status(self, client, seeded, as_role):
        admin, fsr = as_role("ADMINISTRADOR"), as_role("FSR")
        incident = _create(client, admin, sla=12, vic_id=seeded.vic.id).get_json()

        res = client.patch(
            f"/api/v1/incidents/{incident['id']}/status",
            json={"status_id": seeded.status("CERRADO").id}, headers=fsr,
        )
        assert res.status_code == 403
        assert res.get_json()["details"]["required_all"] == ["incidents:update", "incidents:close"]
        assert client.post(f"/api/v1/incidents/{incident['id']}/close", headers=fsr).status_code == 403

        detail = client.get(f"/api/v1/incidents/{incident['id']}", headers=admin).get_json()
        assert detail["status"] == "ABIERTO"
        assert detail["resolved_at"] is None

    def test_missing_catalog_entry(self, client, seeded, as_role):
        seeded.status("ABIERTO").deactivate()
        db.session.commit()
        res = _create(client, as_role("CLIENT"))
        assert res.status_code == 409
        assert res.get_json()["details"]["name"] == "ABIERTO"

    def test_storage_unavailable(self, client, as_role, monkeypatch):
        def broken(*args, **kwargs):
            raise StorageUnavailable("create_incident")

        monkeypatch.setattr(incident_lifecycle, "create_incident", broken)
        res = _create(client, as_role("CLIENT"))
        assert res.status_code == 503
        assert res.get_json()["code"] == "ERR_STORAGE_UNAVAILABLE"

    def test_unknown_incident(self, client, as_role):
        res = client.get("/api/v1/incidents/999", headers=as_role("ADMINISTRADOR"))
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_fsr_users(self, client, seeded, as_role):
        res = client.get("/api/v1/incidents/fsr-users", headers=as_role("ADMINISTRADOR"))
        assert [u["email"] for u in res.get_json()["items"]] == [seeded.user("FSR").email]


# ═══════════════════════════════════════════════════════════════════════════
# Work orders
# ═══════════════════════════════════════════════════════════════════════════


class TestWorkOrderEndpoints:

    def _assign(self, client, seeded, admin, incident_id):
        res = client.post(
            f"/api/v1/incidents/{incident_id}/assign",
            json={"fsr_user_id": seeded.user("FSR").id}, headers=admin,
        )
        assert res.status_code == 201
        return res.get_json()

    def test_client_cannot_read_other_vic_work_order(self, client, seeded, as_role):
        admin, client_headers = as_role("ADMINISTRADOR"), as_role("CLIENT")
        other = VehicleInspectionCenter(name="Other", code="VIC999")
        db.session.add(other)
        db.session.commit()
        theirs = _create(client, admin, sla=12, vic_id=other.id).get_json()
        foreign_wo = self._assign(client, seeded, admin, theirs["id"])
        ours = _create(client, client_headers).get_json()
        own_wo = self._assign(client, seeded, admin, ours["id"])

        assert client.get(f"/api/v1/incidents/{theirs['id']}", headers=client_headers).status_code == 404
        res = client.get(f"/api/v1/work-orders/{foreign_wo['id']}", headers=client_headers)
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"
        res = client.get(f"/api/v1/work-orders/{own_wo['id']}", headers=client_headers)
        assert res.status_code == 200

        listed = client.get("/api/v1/work-orders", headers=client_headers).get_json()
        assert [w["id"] for w in listed["items"]] == [own_wo["id"]]

    def test_admin_lists_orders_across_incidents(self, client, seeded, as_role):
        admin = as_role("ADMINISTRADOR")
        first = _create(client, admin, sla=12, vic_id=seeded.vic.id).get_json()
        second = _create(client, admin, sla=12, vic_id=seeded.vic.id).get_json()
        a = self._assign(client, seeded, admin, first["id"])
        b = self._assign(client, seeded, admin, second["id"])
        client.post(f"/api/v1/work-orders/{b['id']}/start", headers=as_role("FSR"))

        res = client.get("/api/v1/work-orders", headers=admin)
        assert res.status_code == 200
        body = res.get_json()
        assert body["total"] == 2
        assert {w["id"] for w in body["items"]} == {a["id"], b["id"]}

        by_incident = client.get(f"/api/v1/work-orders?incident_id={first['id']}", headers=admin).get_json()
        assert [w["id"] for w in by_incident["items"]] == [a["id"]]
        started = client.get("/api/v1/work-orders?status=EN_PROGRESO", headers=admin).get_json()
        assert [w["id"] for w in started["items"]] == [b["id"]]

    def test_list_rejects_unknown_status(self, client, as_role):
        res = client.get("/api/v1/work-orders?status=DONE", headers=as_role("ADMINISTRADOR"))
        assert res.status_code == 422

    def test_list_requires_token(self, client, seeded):
        assert client.get("/api/v1/work-orders").status_code == 401


# ═══════════════════════════════════════════════════════════════════════════
# Role administration
# ═══════════════════════════════════════════════════════════════════════════


class TestRoleAdminEndpoints:

    def test_permission_change_applies_on_next_request(self, client, as_role):
        client_headers = as_role("CLIENT")
        assert _create(client, client_headers).status_code == 201

        role = Role.query.filter_by(name="CLIENT").first()
        keep = [
            Permission.query.filter_by(name=n).first().id
            for n in ("route:client", "incidents:read")
        ]
        res = client.put(
            f"/api/v1/admin/roles/{role.id}/permissions",
            json={"permission_ids": keep}, headers=as_role("ADMINISTRADOR"),
        )
        assert res.status_code == 200
        assert res.get_json()["permissions"] == ["incidents:read", "route:client"]

        assert _create(client, client_headers).status_code == 403

    def test_revoke_permission_system_wide(self, client, as_role):
        perm = Permission.query.filter_by(name="incidents:read").first()
        res = client.delete(f"/api/v1/admin/permissions/{perm.id}", headers=as_role("ADMINISTRADOR"))
        assert res.status_code == 200
        assert client.get("/api/v1/incidents", headers=as_role("FSR")).status_code == 403

    def test_delete_role_in_use(self, client, as_role):
        role = Role.query.filter_by(name="FSR").first()
        res = client.delete(f"/api/v1/admin/roles/{role.id}", headers=as_role("ADMINISTRADOR"))
        assert res.status_code == 422
        assert res.get_json()["details"]["assigned_users"] == 1

    def test_fsr_cannot_manage_roles(self, client, as_role):
        res = client.get("/api/v1/admin/roles", headers=as_role("FSR"))
        assert res.status_code == 403

    def test_list_roles(self, client, as_role):
        res = client.get("/api/v1/admin/roles", headers=as_role("ADMINISTRADOR"))
        assert res.status_code == 200
        assert {r["name"] for r in res.get_json()["items"]} == {"ADMINISTRADOR", "FSR", "CLIENT", "GUEST"}

    def test_role_listing_accepts_update_permission(self, client, seeded, as_role):
        guest = Role.query.filter_by(name="GUEST").first()
        update = Permission.query.filter_by(name="roles:update").first()
        res = client.put(
            f"/api/v1/admin/roles/{guest.id}/permissions",
            json={"permission_ids": [update.id]}, headers=as_role("ADMINISTRADOR"),
        )
        assert res.status_code == 200

        guest_headers = as_role("GUEST")
        assert client.get("/api/v1/admin/roles", headers=guest_headers).status_code == 200
        res = client.get("/api/v1/admin/permissions", headers=guest_headers)
        assert res.status_code == 403
        assert res.get_json()["details"]["required_any"] == ["roles:read", "permissions:manage"]

    def test_list_permissions_drops_revoked(self, client, as_role):
        admin = as_role("ADMINISTRADOR")
        names = [p["name"] for p in client.get("/api/v1/admin/permissions", headers=admin).get_json()["items"]]
        assert names == sorted(names)
        assert "schedules:read" in names

        perm = Permission.query.filter_by(name="schedules:read").first()
        client.delete(f"/api/v1/admin/permissions/{perm.id}", headers=admin)

        items = client.get("/api/v1/admin/permissions", headers=admin).get_json()["items"]
        assert "schedules:read" not in {p["name"] for p in items}
        assert {"id", "name", "resource", "action", "route_path"} <= set(items[0])
