"""
Login, bearer sessions, password rules and the health check.
"""

from datetime import timedelta

import pytest

from app.extensions import db
from app.models import SessionToken
from app.services.auth_service import (
    PasswordValidationError,
    create_user,
    hash_password,
    validate_password_strength,
    verify_password,
)
from app.services.session_service import create_session, hash_token, validate_session
from app.time_utils import utcnow
from app.validation import ConflictError, ValidationError

from conftest import TEST_PASSWORD


def _login(client, username, password=TEST_PASSWORD):
    return client.post("/api/auth/login", json={"username": username, "password": password})


class TestPasswords:
    @pytest.mark.parametrize(
        "password",
        ["Short1!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigitsHere!", "NoSpecial123"],
    )
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError) as exc:
            validate_password_strength(password)

        assert exc.value.field == "password"

    def test_hash_and_verify(self):
        hashed = hash_password(TEST_PASSWORD, rounds=4)

        assert hashed != TEST_PASSWORD
        assert verify_password(TEST_PASSWORD, hashed) is True
        assert verify_password("Password123?", hashed) is False

    def test_malformed_hash_does_not_verify(self):
        assert verify_password(TEST_PASSWORD, "not-a-bcrypt-hash") is False


class TestUsers:
    def test_duplicate_username_or_email(self, user):
        with pytest.raises(ConflictError):
            create_user("seller", "other@suaza.local", TEST_PASSWORD, rounds=4)
        with pytest.raises(ConflictError):
            create_user("other", "SELLER@suaza.local", TEST_PASSWORD, rounds=4)

    def test_unknown_role(self, db_session):
        with pytest.raises(ValidationError) as exc:
            create_user("cashier", "cashier@suaza.local", TEST_PASSWORD, role="owner", rounds=4)

        assert exc.value.field == "role"


class TestLogin:
    def test_login_returns_token(self, client, user):
        response = _login(client, "seller")

        assert response.status_code == 200
        body = response.get_json()
        assert body["user"]["username"] == "seller"
        assert body["user"]["lastLoginAt"] is not None
        assert len(body["token"]) == 64
        assert body["expiresAt"].endswith("Z")

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        assert me.get_json()["user"]["id"] == user.id

    def test_login_with_email(self, client, user):
        assert _login(client, "seller@suaza.local").status_code == 200

    def test_only_the_token_hash_is_stored(self, client, user):
        token = _login(client, "seller").get_json()["token"]

        stored = db.session.query(SessionToken).filter_by(user_id=user.id).one()
        assert stored.token_hash == hash_token(token)
        assert stored.token_hash != token

    def test_bad_password(self, client, user):
        response = _login(client, "seller", "Wrong123!")

        assert response.status_code == 401
        assert response.get_json() == {"error": "Invalid credentials", "code": "UNAUTHORIZED"}

    def test_missing_fields(self, client, db_session):
        response = client.post("/api/auth/login", json={"username": "seller"})

        assert response.status_code == 400

    def test_inactive_user_cannot_login(self, client, user):
        user.is_active = False
        db.session.commit()

        assert _login(client, "seller").status_code == 401


class TestSessions:
    def test_logout_revokes_token(self, client, auth_headers):
        assert client.post("/api/auth/logout", headers=auth_headers).status_code == 200

        response = client.get("/api/auth/me", headers=auth_headers)

        assert response.status_code == 401

    def test_expired_session(self, user):
        session, token = create_session(user.id)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db.session.commit()

        assert validate_session(token) is None

    def test_idle_session_is_revoked(self, user):
        session, token = create_session(user.id)
        session.last_used_at = utcnow() - timedelta(hours=3)
        db.session.commit()

        assert validate_session(token) is None
        session = db.session.get(SessionToken, session.id, populate_existing=True)
        assert session.is_revoked is True
        assert session.revoked_reason == "Idle timeout"

    def test_deactivated_user_loses_session(self, user):
        _, token = create_session(user.id)
        user.is_active = False
        db.session.commit()

        assert validate_session(token) is None

    def test_missing_bearer_prefix(self, client, user):
        _, token = create_session(user.id)

        response = client.get("/api/auth/me", headers={"Authorization": token})

        assert response.status_code == 401


def test_health(client, db_session):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["status"] == "healthy"


def test_cors_headers_for_known_origin(client, db_session):
    allowed = client.get("/health", headers={"Origin": "http://localhost:5173"})
    other = client.get("/health", headers={"Origin": "http://evil.example"})

    assert allowed.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
    assert "Access-Control-Allow-Origin" not in other.headers
