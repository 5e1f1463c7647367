"""
User administration tests.

Verifies:
- Owners create users with a valid, unique RUT and email
- Profile edits: owners edit anyone, users only themselves, role changes owner-only
- Owners cannot disable or delete themselves
- Users with sales history cannot be deleted
"""

from decimal import Decimal

import pytest

from gesticom.models import ActivityLog, AttendanceRecord, Sale, User
from gesticom.models.auth import ROLE_OWNER
from gesticom.time_utils import today_utc, utcnow

from conftest import DEFAULT_PASSWORD, get_auth_token, make_user


def _new_user_payload(**overrides):
    payload = {
        "nombre": "Ana Pérez",
        "rut": "22.222.222-2",
        "email": "ana@gesticom.test",
        "password": "Segura123",
        "rol": "trabajador",
    }
    payload.update(overrides)
    return payload


class TestCreateUser:

    def test_owner_creates_worker(self, client, db_session, owner_headers):
        resp = client.post("/api/usuarios", json=_new_user_payload(), headers=owner_headers)

        assert resp.status_code == 201
        body = resp.json["usuario"]
        assert body["rut"] == "22222222-2"
        assert body["rol"] == "trabajador"
        assert body["estado"] == "habilitado"
        assert "password" not in body and "password_hash" not in body

        # New account can log in straight away
        assert get_auth_token(client, "ana@gesticom.test", "Segura123") is not None

    def test_invalid_rut(self, client, db_session, owner_headers):
        resp = client.post("/api/usuarios", json=_new_user_payload(rut="22222222-3"), headers=owner_headers)
        assert resp.status_code == 400

    def test_duplicate_rut_in_other_format(self, client, db_session, owner_headers, worker):
        resp = client.post(
            "/api/usuarios",
            json=_new_user_payload(rut="12.345.678-5", email="otra@gesticom.test"),
            headers=owner_headers,
        )
        assert resp.status_code == 409

    def test_duplicate_email_case_insensitive(self, client, db_session, owner_headers, worker):
        resp = client.post(
            "/api/usuarios",
            json=_new_user_payload(email="WORKER@gesticom.test"),
            headers=owner_headers,
        )
        assert resp.status_code == 409

    def test_weak_password(self, client, db_session, owner_headers):
        resp = client.post("/api/usuarios", json=_new_user_payload(password="abc"), headers=owner_headers)
        assert resp.status_code == 400

    def test_invalid_email(self, client, db_session, owner_headers):
        resp = client.post("/api/usuarios", json=_new_user_payload(email="not-an-email"), headers=owner_headers)
        assert resp.status_code == 400

    def test_records_activity(self, client, db_session, owner, owner_headers):
        client.post("/api/usuarios", json=_new_user_payload(), headers=owner_headers)
        assert db_session.query(ActivityLog).filter_by(user_id=owner.id, action="CREATE_USER").count() == 1


class TestListUsers:

    def test_filters(self, client, db_session, owner, worker, owner_headers, password_hash):
        make_user(
            db_session, password_hash,
            name="Dora Disabled", national_id="33333333-3", email="dora@gesticom.test", status="disabled",
        )

        all_users = client.get("/api/usuarios", headers=owner_headers).json
        assert len(all_users) == 3

        workers = client.get("/api/usuarios?rol=trabajador", headers=owner_headers).json
        assert {u["email"] for u in workers} == {"worker@gesticom.test", "dora@gesticom.test"}

        disabled = client.get("/api/usuarios?estado=deshabilitado", headers=owner_headers).json
        assert [u["email"] for u in disabled] == ["dora@gesticom.test"]

        found = client.get("/api/usuarios?search=walter", headers=owner_headers).json
        assert [u["id"] for u in found] == [worker.id]


class TestUpdateUser:

    def test_worker_edits_own_profile(self, client, worker, worker_headers):
        resp = client.put(
            f"/api/usuarios/{worker.id}",
            json={"nombre": "Walter W.", "email": "walter@gesticom.test"},
            headers=worker_headers,
        )

        assert resp.status_code == 200
        assert resp.json["usuario"]["nombre"] == "Walter W."
        assert resp.json["usuario"]["email"] == "walter@gesticom.test"

    def test_worker_cannot_edit_others(self, client, owner, worker_headers):
        resp = client.put(f"/api/usuarios/{owner.id}", json={"nombre": "Hacked"}, headers=worker_headers)
        assert resp.status_code == 403

    def test_worker_cannot_promote_self(self, client, worker, worker_headers):
        resp = client.put(f"/api/usuarios/{worker.id}", json={"rol": "dueño"}, headers=worker_headers)
        assert resp.status_code == 403

    def test_owner_changes_role(self, client, db_session, worker, owner_headers):
        resp = client.put(f"/api/usuarios/{worker.id}", json={"rol": "dueño"}, headers=owner_headers)

        assert resp.status_code == 200
        assert db_session.get(User, worker.id).role == ROLE_OWNER

    def test_owner_cannot_change_own_role(self, client, owner, owner_headers):
        resp = client.put(f"/api/usuarios/{owner.id}", json={"rol": "trabajador"}, headers=owner_headers)
        assert resp.status_code == 409

    def test_email_taken(self, client, owner, worker, worker_headers):
        resp = client.put(f"/api/usuarios/{worker.id}", json={"email": owner.email}, headers=worker_headers)
        assert resp.status_code == 409

    def test_unknown_field(self, client, worker, worker_headers):
        resp = client.put(f"/api/usuarios/{worker.id}", json={"rut": "11111111-1"}, headers=worker_headers)
        assert resp.status_code == 400

    def test_worker_reads_only_self(self, client, owner, worker, worker_headers):
        assert client.get(f"/api/usuarios/{worker.id}", headers=worker_headers).status_code == 200
        assert client.get(f"/api/usuarios/{owner.id}", headers=worker_headers).status_code == 403


class TestToggleStatus:

    def test_disable_then_enable(self, client, db_session, worker, owner_headers):
        resp = client.put(f"/api/usuarios/{worker.id}/toggle-status", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.json["usuario"]["estado"] == "deshabilitado"
        assert get_auth_token(client, worker.email, DEFAULT_PASSWORD) is None

        resp = client.put(f"/api/usuarios/{worker.id}/toggle-status", headers=owner_headers)
        assert resp.json["usuario"]["estado"] == "habilitado"

    def test_cannot_disable_self(self, client, owner, owner_headers):
        resp = client.put(f"/api/usuarios/{owner.id}/toggle-status", headers=owner_headers)
        assert resp.status_code == 409

    def test_unknown_user(self, client, owner_headers):
        resp = client.put("/api/usuarios/9999/toggle-status", headers=owner_headers)
        assert resp.status_code == 404


class TestDeleteUser:

    def test_delete_user_and_attendance(self, client, db_session, worker, owner_headers):
        db_session.add(AttendanceRecord(user_id=worker.id, work_date=today_utc(), check_in=utcnow()))
        db_session.commit()
        worker_id = worker.id

        resp = client.delete(f"/api/usuarios/{worker_id}", headers=owner_headers)

        assert resp.status_code == 200
        assert db_session.get(User, worker_id) is None
        assert db_session.query(AttendanceRecord).filter_by(user_id=worker_id).count() == 0

    def test_user_with_sales_cannot_be_deleted(self, client, db_session, worker, owner_headers):
        db_session.add(Sale(user_id=worker.id, total=Decimal("1000")))
        db_session.commit()

        resp = client.delete(f"/api/usuarios/{worker.id}", headers=owner_headers)

        assert resp.status_code == 409
        assert db_session.get(User, worker.id) is not None

    def test_cannot_delete_self(self, client, owner, owner_headers):
        resp = client.delete(f"/api/usuarios/{owner.id}", headers=owner_headers)
        assert resp.status_code == 409


class TestActivityTrail:

    def test_owner_reads_trail(self, client, db_session, owner, worker, owner_headers):
        get_auth_token(client, worker.email)
        client.put(f"/api/usuarios/{worker.id}/toggle-status", headers=owner_headers)

        resp = client.get("/api/usuarios/actividad", headers=owner_headers)

        assert resp.status_code == 200
        assert [e["accion"] for e in resp.json] == ["DEACTIVATE_USER", "LOGIN"]

        only_worker = client.get(f"/api/usuarios/actividad?usuario_id={worker.id}", headers=owner_headers).json
        assert [e["accion"] for e in only_worker] == ["LOGIN"]

    def test_worker_denied(self, client, worker_headers):
        resp = client.get("/api/usuarios/actividad", headers=worker_headers)
        assert resp.status_code == 403
        assert resp.json["required_roles"] == ["owner"]
