import os
import sys
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

TEST_DB_PATH = ROOT_DIR / "test_bolt.db"
if TEST_DB_PATH.exists():
    TEST_DB_PATH.unlink()

os.environ.setdefault("DATABASE_URL", f"sqlite:///{TEST_DB_PATH}")
os.environ.setdefault("API_BASE_URL", "https://api.bolt.test")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id.apps.googleusercontent.com")
os.environ.setdefault("CALLBACK_SIGNING_SECRET", "test-callback-secret")
os.environ.setdefault("ENVIRONMENT", "test")

from bolt.auth.dependencies import AuthContext, get_current_user  # noqa: E402
from bolt.config import settings  # noqa: E402
from bolt.db.base import Base, SessionLocal  # noqa: E402
from bolt.db.deps import get_session  # noqa: E402
from bolt.db.models import User  # noqa: E402
from bolt.main import app  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def apply_migrations() -> None:
    alembic_cfg = Config(str(ROOT_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(ROOT_DIR / "alembic"))
    command.upgrade(alembic_cfg, "head")


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(path))
    return path


@pytest.fixture()
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
        session.close()


@pytest.fixture()
def auth_context(db_session) -> AuthContext:
    user = User(google_id="google-test-user", email="tester@vertodigital.com", name="Test User")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return AuthContext(user_id=user.id, email=user.email, name=user.name)


@pytest.fixture()
def other_user(db_session) -> AuthContext:
    user = User(google_id="google-other-user", email="other@vertodigital.com", name="Other User")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return AuthContext(user_id=user.id, email=user.email, name=user.name)


@pytest.fixture()
def override_dependencies(db_session, auth_context):
    def get_session_override():
        try:
            yield db_session
        finally:
            pass

    def get_user_override():
        return auth_context

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_current_user] = get_user_override
    try:
        yield
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def api_client(override_dependencies):
    with TestClient(app) as client:
        yield client


class FakeWorkflow:
    """Records outbound workflow calls and replays canned responses."""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.response = {"output": "ok"}
        self.error: Exception | None = None

    def _record(self, **call):
        self.calls.append(call)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture()
def fake_workflow(monkeypatch):
    from bolt.services import workflow_client

    fake = FakeWorkflow()

    def post_json(self, url, payload, *, headers=None):
        return fake._record(kind="json", url=url, payload=payload, headers=headers)

    def post_multipart(self, url, *, fields, files):
        return fake._record(kind="multipart", url=url, fields=fields, files=list(files))

    monkeypatch.setattr(workflow_client.WorkflowClient, "post_json", post_json)
    monkeypatch.setattr(workflow_client.WorkflowClient, "post_multipart", post_multipart)
    return fake
