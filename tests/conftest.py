import itertools
import sys
import uuid
from pathlib import Path
from types import SimpleNamespace

import pytest

# Ensure repository root is on sys.path for `import teamkb`
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from fastapi.testclient import TestClient
from sqlalchemy.dialects import postgresql

from teamkb.models.auth_models import RefreshToken, User
from teamkb.models.team_models import TeamMembership


class FakeScalars:
    def __init__(self, rows):
        self._rows = rows

    def all(self):
        return list(self._rows)


class FakeResult:
    def __init__(self, value):
        self._value = value

    def _rows(self):
        if self._value is None:
            return []
        if isinstance(self._value, list):
            return self._value
        return [self._value]

    def scalar_one_or_none(self):
        rows = self._rows()
        return rows[0] if rows else None

    def scalars(self):
        return FakeScalars(self._rows())

    def all(self):
        return self._rows()


class FakeSession:
    """Stands in for AsyncSession.

    ``results`` are handed out in order, one per ``execute`` call; ``seed`` makes
    rows reachable through ``get``.
    """

    _ids = itertools.count(1)

    def __init__(self, results=None):
        self.results = list(results or [])
        self.statements = []
        self.added = []
        self.objects = []
        self.commits = 0
        self.rollbacks = 0

    def seed(self, *objs):
        self.objects.extend(objs)

    async def execute(self, stmt):
        self.statements.append(stmt)
        value = self.results.pop(0) if self.results else None
        return FakeResult(value)

    async def get(self, model, ident):
        for obj in self.objects + self.added:
            if isinstance(obj, model) and obj.id == ident:
                return obj
        return None

    def add(self, obj):
        self.added.append(obj)

    async def flush(self):
        for obj in self.added:
            if getattr(obj, "id", None) is None:
                if isinstance(obj, (User, RefreshToken)):
                    obj.id = uuid.uuid4()
                else:
                    obj.id = next(self._ids)

    async def refresh(self, obj):
        return None

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1

    async def close(self):
        return None


def compile_pg(stmt) -> tuple[str, dict]:
    compiled = stmt.compile(dialect=postgresql.dialect())
    return str(compiled), dict(compiled.params)


def make_user(username: str = "alice"):
    return SimpleNamespace(id=uuid.uuid4(), username=username, is_active=True)


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def session():
    return FakeSession()


@pytest.fixture()
def user():
    return make_user("alice")


@pytest.fixture()
def memberships(monkeypatch):
    """Membership rows consulted by scoping: seeded ones plus any the session has added."""
    rows = []

    async def fake_get_membership(sess, team_id, user_id):
        for m in rows + [o for o in sess.added if isinstance(o, TeamMembership)]:
            if m.team_id == team_id and m.user_id == user_id:
                return m
        return None

    monkeypatch.setattr("teamkb.services.teams.get_membership", fake_get_membership)
    return rows


def _build_client(monkeypatch, session, current_user):
    # Patch DB init/close in lifespan to no-op
    import teamkb.db.sa as db_sa

    async def _noop(*args, **kwargs):
        return None

    monkeypatch.setattr(db_sa, "init_sa_engine", _noop)
    monkeypatch.setattr(db_sa, "create_tables", _noop)
    monkeypatch.setattr(db_sa, "close_sa_engine", _noop)

    from teamkb import main as main_mod
    from teamkb.core import deps as core_deps

    async def fake_session():
        yield session

    app = main_mod.app
    app.dependency_overrides[db_sa.get_session] = fake_session
    if current_user is not None:
        async def fake_current_user():
            return current_user

        app.dependency_overrides[core_deps.get_current_user] = fake_current_user
        app.dependency_overrides[core_deps.get_optional_user] = fake_current_user
    return app


@pytest.fixture()
def client(monkeypatch, session, user):
    app = _build_client(monkeypatch, session, user)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def anon_client(monkeypatch, session):
    app = _build_client(monkeypatch, session, None)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
