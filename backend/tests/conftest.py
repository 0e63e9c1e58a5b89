"""Shared fixtures: in-memory SQLite, a fixed clock, a fake workspace client and logins."""

import itertools
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SESSION_SECRET", "test-session-secret")

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.database import Base, get_db  # noqa: E402
from app.dependencies import get_now, get_sync_client, get_workspace_client  # noqa: E402
from app.models.user import OrgRole, OrgUser  # noqa: E402
from app.services.auth import SESSION_COOKIE_NAME, encode_session  # noqa: E402
from main import app  # noqa: E402

# Wednesday; the current week starts Monday 2026-10-12
NOW = datetime(2026, 10, 14, 15, 0, tzinfo=timezone.utc)

_workspace_ids = itertools.count(1000)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class Clock:
    def __init__(self, now: datetime):
        self.now = now


class FakeWorkspace:
    """Records every call; answers from plain attributes a test can set."""

    def __init__(self):
        self.profile = {"id": 42, "email": "someone@example.com", "username": "someone"}
        self.view = {"id": "view-1", "name": "Active Projects"}
        self.view_tasks: list[dict] = []
        self.teams = [{"id": "team-1", "name": "Acme"}]
        self.members: list[dict] = []
        self.spaces = [{"id": "space-1", "name": "Delivery"}]
        self.folders = [{"id": "folder-1", "name": "Clients"}]
        self.space_lists = [{"id": "list-1", "name": "Active Projects"}]
        self.folder_lists = [{"id": "list-2", "name": "Archive"}]
        self.error: Exception | None = None
        self.calls: list[tuple[str, dict]] = []

    def _call(self, name: str, /, **kwargs):
        self.calls.append((name, kwargs))
        if self.error is not None:
            raise self.error

    def calls_named(self, name: str) -> list[dict]:
        return [kw for n, kw in self.calls if n == name]

    def get_authorized_user(self):
        self._call("get_authorized_user")
        return self.profile

    def list_teams(self):
        self._call("list_teams")
        return self.teams

    def get_team_members(self, team_id):
        self._call("get_team_members", team_id=team_id)
        return self.members

    def get_view(self, view_id):
        self._call("get_view", view_id=view_id)
        return self.view

    def get_view_tasks(self, view_id):
        self._call("get_view_tasks", view_id=view_id)
        return self.view_tasks

    def list_spaces(self, team_id):
        self._call("list_spaces", team_id=team_id)
        return self.spaces

    def list_folders(self, space_id):
        self._call("list_folders", space_id=space_id)
        return self.folders

    def list_lists(self, space_id=None, folder_id=None):
        self._call("list_lists", space_id=space_id, folder_id=folder_id)
        return self.folder_lists if folder_id else self.space_lists

    def create_task(self, list_id, name, description=None, assignees=None):
        self._call("create_task", list_id=list_id, name=name, description=description, assignees=assignees)
        return {"id": "task-new", "name": name, "url": "https://app.clickup.com/t/task-new"}

    def update_time_estimate(self, task_id, estimate_ms):
        self._call("update_time_estimate", task_id=task_id, estimate_ms=estimate_ms)
        return {}

    def create_time_entry(self, team_id, task_id, start_ms, duration_ms, description=None, assignee=None,
                          billable=True):
        self._call("create_time_entry", team_id=team_id, task_id=task_id, start_ms=start_ms,
                   duration_ms=duration_ms, description=description, assignee=assignee)
        return {}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "OWNER_EMAIL",
        "IAM_BOOTSTRAP_OWNER_EMAIL",
        "CRON_SECRET",
        "CLICKUP_TEAM_ID",
        "CLICKUP_ACTIVE_VIEW_ID",
        "CLICKUP_CREATE_TASK_LIST_ID",
        "LOCK_UTC_OFFSET_HOURS",
        "LOCK_CUTOFF_HOUR",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return Clock(NOW)


@pytest.fixture
def workspace():
    return FakeWorkspace()


@pytest.fixture
def client(session_factory, clock, workspace):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_now] = lambda: clock.now
    app.dependency_overrides[get_workspace_client] = lambda: workspace
    app.dependency_overrides[get_sync_client] = lambda: workspace
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(name="User", roles=("CONSULTANT",), country="US", email=None, is_active=True):
        n = next(_workspace_ids)
        user = OrgUser(
            clickup_user_id=str(n),
            email=email or f"{name.lower().replace(' ', '.')}.{n}@example.com",
            name=name,
            country=country,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        for role in roles:
            db.add(OrgRole(user_id=user.id, role=role))
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def login(client):
    """Put a session cookie for ``user`` on the test client."""

    def _login(user):
        session = {
            "access_token": "pk_test_token",
            "user": {"id": user.clickup_user_id, "email": user.email, "username": user.name},
        }
        client.cookies.set(SESSION_COOKIE_NAME, encode_session(session))
        return client

    return _login
