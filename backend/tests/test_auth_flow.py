from __future__ import annotations

import pytest
from fastapi.testclient import TestClient


@pytest.fixture()
def anon_client(app):
    with TestClient(app) as c:
        yield c


def _register(c, email="new@example.com", password="correct-horse-1"):
    return c.post("/api/auth/register", json={"email": email, "name": "New User", "password": password})


def test_register_login_me(anon_client):
    res = _register(anon_client, email="New@Example.com")
    assert res.status_code == 201
    assert res.json()["email"] == "new@example.com"
    assert "password_hash" not in res.json()

    login = anon_client.post("/api/auth/login", json={"email": "new@example.com", "password": "correct-horse-1"})
    assert login.status_code == 200
    token = login.json()["access_token"]
    assert login.json()["token_type"] == "bearer"

    me = anon_client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "new@example.com"

    jobs = anon_client.get("/api/jobs", headers={"Authorization": f"Bearer {token}"})
    assert jobs.status_code == 200
    assert jobs.json() == []


def test_duplicate_registration_conflicts(anon_client):
    assert _register(anon_client).status_code == 201
    res = _register(anon_client, email="NEW@example.com")
    assert res.status_code == 409
    assert res.json()["error"] == "CONFLICT"


def test_short_password_rejected(anon_client):
    res = _register(anon_client, password="short")
    assert res.status_code == 400
    assert res.json()["error"] == "VALIDATION_ERROR"


def test_wrong_password_unauthorized(anon_client):
    _register(anon_client)
    res = anon_client.post("/api/auth/login", json={"email": "new@example.com", "password": "wrong-password"})
    assert res.status_code == 401
    assert res.json() == {"error": "UNAUTHORIZED", "message": "Invalid email or password"}


def test_bad_or_foreign_tokens_rejected(anon_client, users):
    res = anon_client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert res.status_code == 401
    assert res.headers.get("www-authenticate") == "Bearer"

    from applytrack.core.security import create_access_token

    orphan = create_access_token(subject="ghost@example.com")
    res2 = anon_client.get("/api/jobs", headers={"Authorization": f"Bearer {orphan}"})
    assert res2.status_code == 401
    assert res2.json()["message"] == "User not found"
