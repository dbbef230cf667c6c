import os
from datetime import timedelta

from fastapi.testclient import TestClient

from orilla.main import app
from orilla.services.auth_service import create_access_token

client = TestClient(app)

def _mint_token(user_id="dev-user") -> str:
    # /auth/token requires JWT_SECRET
    os.environ.setdefault("JWT_SECRET", "test-jwt-secret-for-pytest-only-0000000000000000")
    r = client.post("/auth/token", json={"user_id": user_id})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]

def test_missing_authorization_header_on_mutation_is_403(factory):
    sheet = factory.sheet(entries=[factory.entry()])
    r = client.post(f"/time_sheets/{sheet.id}/submit")
    assert r.status_code == 403
    assert r.json()["code"] == "PERMISSION_DENIED"
    assert r.json()["reason"] == "Not authenticated"

def test_missing_authorization_header_on_read_is_401(factory):
    sheet = factory.sheet()
    r = client.get(f"/time_sheets/{sheet.id}")
    assert r.status_code == 401

def test_permissions_read_is_anonymous_without_header(factory):
    entry = factory.entry()
    r = client.get(f"/time_entries/{entry.id}/permissions")
    assert r.status_code == 200
    assert r.json()["can_comment"] is False

def test_wrong_scheme_401(factory):
    user = factory.user()
    token = _mint_token(user.id)
    r = client.get("/time_sheets", headers={"Authorization": f"Basic {token}"})
    assert r.status_code == 401
    r = client.post("/time_sheets", json={"title": "x"}, headers={"Authorization": f"Basic {token}"})
    assert r.status_code == 401

def test_garbled_bearer_token_401():
    r = client.post(
        "/time_sheets",
        json={"title": "x"},
        headers={"Authorization": "Bearer not-a-real-token"},
    )
    assert r.status_code == 401

def test_token_for_unknown_user_401():
    token = _mint_token("no-such-user")
    r = client.post("/time_sheets", json={"title": "x"}, headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert "Unknown user" in r.text

def test_token_endpoint_hidden_outside_dev(monkeypatch):
    monkeypatch.setenv("ENV", "production")
    r = client.post("/auth/token", json={"user_id": "u"})
    assert r.status_code == 404

def test_short_jwt_secret_rejected(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "too-short")
    r = client.post("/auth/token", json={"user_id": "u"})
    assert r.status_code == 400

def test_expired_token_401(factory):
    user = factory.user()
    token = create_access_token(user.id, ttl=timedelta(seconds=-5))
    r = client.get("/time_sheets", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Token expired"
