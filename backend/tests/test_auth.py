"""
Authentication tests: registration, login, throttling, sessions.
"""

import pytest

from toolcrib.errors import InvalidCredentialsError, WeakPasswordError
from toolcrib.models import SessionToken, User
from toolcrib.services import auth_service, session_service
from conftest import TEST_PASSWORD, auth_headers, get_auth_token


class TestPasswords:

    def test_hash_is_not_plaintext_and_verifies(self, app):
        hashed = auth_service.hash_password("hunter22")
        assert hashed != "hunter22"
        assert auth_service.verify_password("hunter22", hashed)
        assert not auth_service.verify_password("hunter23", hashed)

    def test_short_password_rejected(self, app):
        with pytest.raises(WeakPasswordError) as exc:
            auth_service.validate_password_strength("abc")
        assert "password" in exc.value.fields

    def test_authenticate_wrong_password(self, admin_user):
        with pytest.raises(InvalidCredentialsError):
            auth_service.authenticate("alice", "wrong-password")

    def test_authenticate_inactive_user(self, admin_user, db_session):
        admin_user.is_active = False
        db_session.commit()
        with pytest.raises(InvalidCredentialsError):
            auth_service.authenticate("alice", TEST_PASSWORD)


class TestRegistration:

    def test_first_account_may_be_admin(self, client):
        resp = client.post("/api/auth/register", json={"name": "owner", "password": "secret1", "role": "admin"})
        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "admin"
        assert resp.json["token"]

    def test_later_admin_registration_forbidden(self, client, admin_user):
        resp = client.post("/api/auth/register", json={"name": "sneaky", "password": "secret1", "role": "admin"})
        assert resp.status_code == 403
        assert resp.json["kind"] == "Forbidden"

    def test_staff_registration_defaults(self, client, admin_user):
        resp = client.post("/api/auth/register", json={"name": "carol", "password": "secret1"})
        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "staff"
        assert "CHECK_IN_OUT" in resp.json["capabilities"]

    def test_user_admin_never_self_registered(self, client):
        resp = client.post("/api/auth/register", json={"name": "root", "password": "secret1", "role": "user-admin"})
        assert resp.status_code == 403

    def test_duplicate_name(self, client, staff_user):
        resp = client.post("/api/auth/register", json={"name": "bob", "password": "secret1"})
        assert resp.status_code == 409
        assert resp.json["kind"] == "DuplicateName"

    def test_weak_password(self, client):
        resp = client.post("/api/auth/register", json={"name": "dave", "password": "123"})
        assert resp.status_code == 400
        assert resp.json["kind"] == "WeakPassword"
        assert "password" in resp.json["fields"]

    def test_blank_name(self, client):
        resp = client.post("/api/auth/register", json={"name": "   ", "password": "secret1"})
        assert resp.status_code == 400
        assert resp.json["kind"] == "ValidationError"

    def test_non_string_password(self, client):
        resp = client.post("/api/auth/register", json={"name": "zed", "password": 1234567})
        assert resp.status_code == 400
        assert resp.json["kind"] == "WeakPassword"
        assert "password" in resp.json["fields"]

    def test_non_string_name(self, client):
        resp = client.post("/api/auth/register", json={"name": ["zed"], "password": "secret1"})
        assert resp.status_code == 400
        assert resp.json["kind"] == "ValidationError"
        assert "name" in resp.json["fields"]


class TestLogin:

    def test_login_returns_token_and_capabilities(self, client, staff_user):
        resp = client.post("/api/auth/login", json={"name": "bob", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        assert resp.json["token"]
        assert resp.json["user"]["name"] == "bob"
        assert sorted(resp.json["capabilities"]) == ["CHECK_IN_OUT", "VIEW_INVENTORY"]

    def test_wrong_password(self, client, staff_user):
        resp = client.post("/api/auth/login", json={"name": "bob", "password": "nope-nope"})
        assert resp.status_code == 401
        assert resp.json["kind"] == "InvalidCredentials"

    def test_unknown_user_same_error(self, client):
        resp = client.post("/api/auth/login", json={"name": "ghost", "password": "whatever"})
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid credentials"

    def test_missing_fields(self, client):
        resp = client.post("/api/auth/login", json={"name": "bob"})
        assert resp.status_code == 400

    @pytest.mark.parametrize(
        "body,field",
        [
            ({"name": 12345, "password": "secret-pass"}, "name"),
            ({"name": "bob", "password": 1234567}, "password"),
        ],
    )
    def test_non_string_credentials(self, client, staff_user, body, field):
        resp = client.post("/api/auth/login", json=body)
        assert resp.status_code == 400
        assert resp.json["kind"] == "ValidationError"
        assert field in resp.json["fields"]

    def test_lockout_after_repeated_failures(self, app, client, staff_user):
        app.config["LOGIN_MAX_FAILED_ATTEMPTS"] = 3

        for _ in range(2):
            resp = client.post("/api/auth/login", json={"name": "bob", "password": "bad-pass"})
            assert resp.status_code == 401
            assert "warning" in resp.json

        resp = client.post("/api/auth/login", json={"name": "bob", "password": "bad-pass"})
        assert resp.status_code == 429
        assert resp.json["locked"] is True

        # Even the right password is refused while locked
        resp = client.post("/api/auth/login", json={"name": "bob", "password": TEST_PASSWORD})
        assert resp.status_code == 429

        status = client.get("/api/auth/lockout-status/bob").json
        assert status["locked"] is True
        assert status["failed_attempts"] == 3

    def test_success_resets_failure_count(self, app, client, staff_user):
        app.config["LOGIN_MAX_FAILED_ATTEMPTS"] = 3
        for _ in range(2):
            client.post("/api/auth/login", json={"name": "bob", "password": "bad-pass"})
        assert get_auth_token(client, "bob") is not None

        status = client.get("/api/auth/lockout-status/bob").json
        assert status["failed_attempts"] == 0
        assert status["locked"] is False


class TestSessions:

    def test_me(self, client, staff_headers):
        resp = client.get("/api/auth/me", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["user"]["name"] == "bob"
        assert [c["code"] for c in resp.json["capability_details"]] == ["CHECK_IN_OUT", "VIEW_INVENTORY"]
        assert resp.json["capability_details"][0]["name"] == "Check In / Check Out"

    def test_logout_revokes_token(self, client, staff_user):
        token = get_auth_token(client, "bob")
        headers = auth_headers(token)
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_token_stored_hashed(self, staff_user, db_session):
        session, token = session_service.create_session(staff_user.id)
        assert session.token_hash != token
        assert session.token_hash == session_service.hash_token(token)

    def test_expired_session_rejected(self, staff_user, db_session):
        session, token = session_service.create_session(staff_user.id)
        session.expires_at = session.created_at
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_revoke_all_sessions(self, staff_user, db_session):
        _, token_a = session_service.create_session(staff_user.id)
        _, token_b = session_service.create_session(staff_user.id)
        assert session_service.revoke_all_user_sessions(staff_user.id) == 2
        assert session_service.validate_session(token_a) is None
        assert session_service.validate_session(token_b) is None

    def test_cleanup_removes_old_revoked_sessions(self, staff_user, db_session):
        session, token = session_service.create_session(staff_user.id)
        session_service.revoke_session(token)
        assert session_service.cleanup_expired_sessions(older_than_days=0) == 1
        assert db_session.query(SessionToken).count() == 0
        assert db_session.query(User).count() == 1
