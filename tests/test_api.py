from fastapi.testclient import TestClient

from bolt.auth import dependencies as auth_dependencies
from bolt.db.deps import get_session
from bolt.db.repositories.users import UsersRepository
from bolt.main import app


def test_protected_routes_require_auth():
    app.dependency_overrides.clear()
    with TestClient(app) as client:
        resp = client.get("/ad-copies")
    assert resp.status_code == 401


def test_health_endpoints():
    with TestClient(app) as client:
        health = client.get("/health")
        db_health = client.get("/health/db")

    assert health.status_code == 200
    assert health.json() == {"ok": True}
    assert db_health.status_code == 200
    assert "db" in db_health.json()


def _override_session(db_session):
    def get_session_override():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_session] = get_session_override


def test_login_upserts_user_for_allowed_domain(db_session, monkeypatch):
    app.dependency_overrides.clear()
    _override_session(db_session)
    monkeypatch.setattr(
        auth_dependencies,
        "verify_google_id_token",
        lambda _token: {"sub": "google-123", "email": "Jane@VertoDigital.com", "name": "Jane"},
    )

    try:
        with TestClient(app) as client:
            resp = client.get("/auth/status", headers={"Authorization": "Bearer test-token"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["isAuthenticated"] is True
        assert body["user"]["name"] == "Jane"

        user = UsersRepository(db_session).get_by_google_id("google-123")
        assert user is not None
        assert user.last_login_at is not None
    finally:
        app.dependency_overrides.clear()


def test_disallowed_email_domain_is_forbidden(db_session, monkeypatch):
    app.dependency_overrides.clear()
    _override_session(db_session)
    monkeypatch.setattr(
        auth_dependencies,
        "verify_google_id_token",
        lambda _token: {"sub": "google-456", "email": "someone@gmail.com"},
    )

    try:
        with TestClient(app) as client:
            resp = client.get("/content-briefs", headers={"Authorization": "Bearer test-token"})
        assert resp.status_code == 403
        assert resp.json()["detail"] == "Only @vertodigital.com emails are allowed"
        assert UsersRepository(db_session).get_by_google_id("google-456") is None
    finally:
        app.dependency_overrides.clear()


def test_auth_status_without_token():
    app.dependency_overrides.clear()
    with TestClient(app) as client:
        resp = client.get("/auth/status")
    assert resp.status_code == 200
    assert resp.json() == {"isAuthenticated": False, "user": None}
