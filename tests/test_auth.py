import sys

import pytest
from sqlmodel import select

from app.models import User
from conftest import VALID_REGISTRATION, register


def _users(db_session, **filters):
    db_session.expire_all()
    stmt = select(User)
    for field, value in filters.items():
        stmt = stmt.where(getattr(User, field) == value)
    return db_session.exec(stmt).all()


def test_register_creates_user_and_sets_session_cookie(client, db_session):
    response = register(client)
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["user"]["email"] == "ada@example.com"
    assert "password" not in body["user"]
    assert body["user"]["createdAt"].endswith("+00:00")

    cookie = response.headers["set-cookie"]
    assert cookie.startswith(f"userId={body['user']['id']}")
    assert "HttpOnly" in cookie
    assert "SameSite=lax" in cookie
    assert "Max-Age=604800" in cookie
    assert "Secure" not in cookie

    stored = _users(db_session, email="ada@example.com")
    assert len(stored) == 1
    assert stored[0].password != VALID_REGISTRATION["password"]
    assert stored[0].password.startswith("$2")


@pytest.mark.parametrize(
    "overrides, field, message",
    [
        ({"firstname": "A"}, "firstname", "First name must be at least 2 characters"),
        ({"lastname": "  "}, "lastname", "Last name is required"),
        ({"username": "ab"}, "username", "Username must be at least 3 characters"),
        ({"username": "ada-l"}, "username", "Username can only contain letters, numbers, and underscores"),
        ({"email": "ada.example.com"}, "email", "Please enter a valid email address"),
        ({"phone": "call me"}, "phone", "Please enter a valid phone number"),
        ({"password": "short1A", "confirmPassword": "short1A"}, "password", "Password must be at least 8 characters"),
        (
            {"password": "alllowercase1", "confirmPassword": "alllowercase1"},
            "password",
            "Password must contain at least one uppercase letter, one lowercase letter, and one number",
        ),
        ({"confirmPassword": "Engine1844"}, "confirmPassword", "Passwords do not match"),
    ],
)
def test_register_rejects_invalid_fields_without_persisting(client, db_session, overrides, field, message):
    response = register(client, **overrides)
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["errors"][field] == message
    assert "set-cookie" not in response.headers
    assert _users(db_session) == []


def test_register_without_username_is_allowed(client):
    payload = {k: v for k, v in VALID_REGISTRATION.items() if k != "username"}
    response = client.post("/auth/register", json=payload)
    assert response.status_code == 201
    assert response.json()["user"]["username"] is None


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"username": "other", "phone": "555-0100"}, "email"),
        ({"email": "other@example.com", "phone": "555-0100"}, "username"),
        ({"email": "other@example.com", "username": "other"}, "phone"),
    ],
)
def test_register_duplicate_identifier_conflicts(client, db_session, overrides, field):
    assert register(client).status_code == 201

    response = register(client, **overrides)
    assert response.status_code == 409
    body = response.json()
    assert field in body["errors"]
    assert body["message"].startswith("User already exists with this")

    value = VALID_REGISTRATION[field]
    assert len(_users(db_session, **{field: value})) == 1


def test_register_conflict_prefers_email_over_phone(client):
    register(client)
    response = register(client, username="someone_else")
    assert response.status_code == 409
    assert response.json()["message"] == "User already exists with this email"


def test_register_race_is_caught_by_unique_constraint(client, db_session, monkeypatch):
    register(client)
    accounts = sys.modules["app.services.accounts"]
    original = accounts.find_conflicting_field
    calls = []

    def _miss_first_time(session, values):
        calls.append(values)
        if len(calls) == 1:
            return None  # the pre-check loses the race
        return original(session, values)

    monkeypatch.setattr(accounts, "find_conflicting_field", _miss_first_time)

    response = register(client, username="racer", phone="555-0199")
    assert response.status_code == 409
    assert "email" in response.json()["errors"]
    assert len(calls) == 2
    assert len(_users(db_session, email=VALID_REGISTRATION["email"])) == 1


def test_login_with_email_username_or_phone(client):
    register(client)
    client.cookies.clear()
    for identifier in ("ada@example.com", "ada_l", "+44 20 7946 0000"):
        response = client.post("/auth/login", json={"identifier": identifier, "password": "Engine1843"})
        assert response.status_code == 200
        user = response.json()["data"]["user"]
        assert user["email"] == "ada@example.com"
        assert "password" not in user
        assert "userId=" in response.headers["set-cookie"]


def test_login_wrong_password_is_attributed_to_password(client):
    register(client)
    response = client.post("/auth/login", json={"identifier": "ada@example.com", "password": "Engine1844"})
    assert response.status_code == 401
    assert response.json()["errors"] == {"password": "Incorrect password"}


def test_login_unknown_identifier_is_attributed_to_identifier(client):
    response = client.post("/auth/login", json={"identifier": "nobody@example.com", "password": "Engine1843"})
    assert response.status_code == 401
    assert "identifier" in response.json()["errors"]


def test_login_requires_identifier_and_password(client):
    response = client.post("/auth/login", json={"identifier": " ", "password": ""})
    assert response.status_code == 400
    assert set(response.json()["errors"]) == {"identifier", "password"}


def test_malformed_body_is_reported_as_validation_error(client):
    response = client.post("/auth/login", json={"identifier": ["not", "a", "string"], "password": "x"})
    assert response.status_code == 400
    assert "identifier" in response.json()["errors"]


def test_login_status_reads_session_cookie(client):
    user_id = register(client).json()["user"]["id"]
    response = client.get("/auth/login")
    assert response.status_code == 200
    assert response.json()["data"]["user"]["id"] == user_id


def test_login_status_without_cookie_is_unauthenticated(client):
    response = client.get("/auth/login")
    assert response.status_code == 401
    assert "set-cookie" not in response.headers


def test_login_status_clears_stale_cookie(client):
    client.cookies.set("userId", "deadbeef")
    response = client.get("/auth/login")
    assert response.status_code == 401
    cookie = response.headers["set-cookie"]
    assert cookie.startswith('userId=""') or "Max-Age=0" in cookie


def test_logout_clears_cookie_and_redirects(client):
    register(client)
    response = client.post("/auth/logout", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/"
    assert "Max-Age=0" in response.headers["set-cookie"] or "expires=" in response.headers["set-cookie"].lower()


def test_dashboard_requires_authenticated_user(client):
    assert client.get("/dashboard").status_code == 401

    register(client)
    response = client.get("/dashboard")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["username"] == "ada_l"
    assert data["storage"] == {"files": 0, "bytes": 0, "human": "0 B"}


def test_dashboard_clears_cookie_of_deleted_user(client):
    client.cookies.set("userId", "deadbeef")
    response = client.get("/dashboard")
    assert response.status_code == 401
    assert response.json()["message"] == "Authentication required"
    cookie = response.headers["set-cookie"]
    assert cookie.startswith('userId=""') or "Max-Age=0" in cookie


def test_metrics_count_registrations_and_logins(client):
    register(client)
    client.post("/auth/login", json={"identifier": "ada_l", "password": "Engine1843"})
    snapshot = client.get("/metrics").json()
    assert snapshot["registrations"] == 1
    assert snapshot["logins"] == 1
    assert snapshot["users"] == 1


def test_auth_endpoints_are_rate_limited(tmp_path, monkeypatch):
    from conftest import prepare_client

    with prepare_client(tmp_path, monkeypatch, AUTH_RATE_LIMIT_PER_MINUTE="2") as c:
        for _ in range(2):
            c.post("/auth/login", json={"identifier": "x@example.com", "password": "y"})
        response = c.post("/auth/login", json={"identifier": "x@example.com", "password": "y"})
        assert response.status_code == 429
        assert "Retry-After" in response.headers
