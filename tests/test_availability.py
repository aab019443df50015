from conftest import register


def test_requires_at_least_one_field(client):
    response = client.get("/users/check")
    assert response.status_code == 400
    assert "At least one field" in response.json()["message"]

    response = client.post("/users/check", json={})
    assert response.status_code == 400


def test_existing_email_is_taken(client):
    register(client)
    response = client.get("/users/check", params={"email": "ada@example.com"})
    assert response.status_code == 200
    body = response.json()
    assert body["available"] is False
    assert body["checks"] == {"email": True}
    assert body["message"] == "One or more fields are already taken"


def test_fresh_email_is_available(client):
    register(client)
    response = client.get("/users/check", params={"email": "grace@example.com"})
    body = response.json()
    assert body["available"] is True
    assert body["checks"] == {"email": False}
    assert body["message"] == "All fields are available"


def test_combined_report_flags_only_taken_fields(client):
    register(client)
    response = client.post(
        "/users/check",
        json={"email": "grace@example.com", "username": "ada_l", "phone": "555-0100"},
    )
    body = response.json()
    assert body["available"] is False
    assert body["checks"] == {"email": False, "username": True, "phone": False}


def test_get_short_circuits_on_first_bad_format(client):
    response = client.get("/users/check", params={"email": "not-an-email", "username": "x"})
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Please enter a valid email address"
    assert list(body["errors"]) == ["email"]


def test_post_reports_every_bad_format(client):
    response = client.post("/users/check", json={"email": "not-an-email", "username": "x", "phone": "abc"})
    assert response.status_code == 400
    assert set(response.json()["errors"]) == {"email", "username", "phone"}


def test_repeated_checks_are_idempotent(client):
    register(client)
    params = {"email": "ada@example.com", "username": "new_name"}
    first = client.get("/users/check", params=params).json()
    second = client.get("/users/check", params=params).json()
    assert first == second
    assert first["checks"] == {"email": True, "username": False}
