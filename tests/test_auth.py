"""Tests for sign-up, sign-in, token handling and role permissions."""

import datetime

import jwt

from hospital_app_pkg import db
from hospital_app_pkg.models import User, ActivityLog, TokenBlacklist
from hospital_app_pkg.permissions import permissions_for_roles, ALL_PERMISSIONS

# Same password the conftest user fixtures are created with.
PASSWORD = "correct-horse-battery"


def signup(client, email, **overrides):
    payload = {"email": email, "password": PASSWORD, "first_name": "Sam", "last_name": "Staff"}
    payload.update(overrides)
    return client.post("/api/auth/signup", json=payload)


class TestSignup:
    """POST /api/auth/signup"""

    def test_first_user_is_admin(self, client):
        resp = signup(client, "first@hospital.test")
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["user"]["roles"] == ["admin"]
        assert body["token"]
        assert "hashed_password" not in body["user"]

    def test_later_users_are_receptionists(self, client):
        signup(client, "first@hospital.test")
        body = signup(client, "second@hospital.test").get_json()
        assert body["user"]["roles"] == ["receptionist"]

    def test_duplicate_email(self, client):
        signup(client, "first@hospital.test")
        resp = signup(client, "FIRST@hospital.test")
        assert resp.status_code == 409
        assert User.query.count() == 1

    def test_short_password(self, client):
        resp = signup(client, "first@hospital.test", password="short")
        assert resp.status_code == 400
        assert "password" in resp.get_json()["error"]

    def test_invalid_email(self, client):
        resp = signup(client, "not-an-email")
        assert resp.status_code == 400
        assert "email" in resp.get_json()["error"]


class TestSignin:
    """POST /api/auth/signin"""

    def test_success(self, client, nurse):
        resp = client.post("/api/auth/signin", json={"email": nurse.email, "password": PASSWORD})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["email"] == nurse.email
        assert "triage:write" in body["user"]["permissions"]
        assert ActivityLog.query.filter_by(activity_type="user_login", user_id=nurse.id).count() == 1

    def test_wrong_password(self, client, nurse):
        resp = client.post("/api/auth/signin", json={"email": nurse.email, "password": "wrong-password"})
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "Invalid credentials."}

    def test_unknown_email(self, client):
        resp = client.post("/api/auth/signin", json={"email": "ghost@hospital.test", "password": PASSWORD})
        assert resp.status_code == 401

    def test_inactive_user(self, client, nurse):
        nurse.is_active = False
        db.session.commit()
        resp = client.post("/api/auth/signin", json={"email": nurse.email, "password": PASSWORD})
        assert resp.status_code == 403


class TestTokens:
    """Bearer token handling."""

    def test_me(self, client, nurse, nurse_headers):
        resp = client.get("/api/auth/me", headers=nurse_headers)
        assert resp.status_code == 200
        assert resp.get_json()["user"]["id"] == nurse.id

    def test_missing_token(self, client):
        resp = client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "No token provided."}

    def test_garbage_token(self, client, nurse):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.token"})
        assert resp.status_code == 401

    def test_expired_token(self, app, client, nurse):
        now = datetime.datetime.now(datetime.timezone.utc)
        token = jwt.encode(
            {"sub": str(nurse.id), "jti": "expired-jti", "iat": now - datetime.timedelta(hours=2),
             "exp": now - datetime.timedelta(hours=1)},
            app.config["JWT_SECRET_KEY"], algorithm="HS256",
        )
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert "expired" in resp.get_json()["error"]

    def test_token_signed_with_other_key(self, client, nurse):
        token = jwt.encode({"sub": str(nurse.id), "jti": "x"}, "some-other-secret-key-that-is-long-enough",
                           algorithm="HS256")
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_deleted_user_loses_access(self, client, nurse, nurse_headers):
        db.session.delete(nurse)
        db.session.commit()
        resp = client.get("/api/auth/me", headers=nurse_headers)
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "User not found."}

    def test_signout_revokes_token(self, client, nurse, nurse_headers):
        resp = client.post("/api/auth/signout", headers=nurse_headers)
        assert resp.status_code == 200
        assert TokenBlacklist.query.count() == 1
        assert ActivityLog.query.filter_by(activity_type="user_logout").count() == 1
        resp = client.get("/api/auth/me", headers=nurse_headers)
        assert resp.status_code == 401
        assert "revoked" in resp.get_json()["error"]


class TestPermissions:
    """Role to permission mapping."""

    def test_admin_has_everything(self):
        assert permissions_for_roles(["admin"]) == ALL_PERMISSIONS

    def test_receptionist_cannot_triage(self):
        perms = permissions_for_roles(["receptionist"])
        assert "queue:write" in perms
        assert "triage:write" not in perms

    def test_roles_combine(self):
        perms = permissions_for_roles(["cashier", "nurse"])
        assert {"revenue:write", "triage:write"} <= perms

    def test_delete_is_admin_only(self):
        for role in ("doctor", "nurse", "manager"):
            assert "patient:delete" not in permissions_for_roles([role])

    def test_forbidden_route(self, client, receptionist_headers):
        resp = client.get("/api/revenue", headers=receptionist_headers)
        assert resp.status_code == 403
        assert resp.get_json() == {"error": "Permission 'revenue:read' required."}
