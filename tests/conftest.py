"""
tests/conftest.py -- Shared test fixtures for the task tracker.

This module provides:
  - FakeClock: a settable clock for the session issuer/validator
  - engine: a fresh in-memory database per test (unit tests)
  - stores / core: the real stores and services wired on that engine
  - api_client: TestClient over the real FastAPI app with a patched lifespan

Design: Unit tests use plain sqlite:///:memory:. SQLAlchemy keeps one
connection per thread for :memory: databases, and unit tests never leave the
test thread, so every store sees the same schema.

The API fixture needs named shared-memory SQLite URIs instead, because
TestClient runs route handlers in a thread pool. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process.

DEBUG, RATE_LIMIT_ENABLED and BCRYPT_ROUNDS must be set before any project
import: get_settings() is read at module load by auth.tokens and api.limiter.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set env before any project import so get_settings() picks it up.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app, init_state
from audit.recorder import SqlAuditRecorder
from auth.access import AccessEvaluator, AccessGuard
from auth.models import Role
from auth.sessions import SessionIssuer, SessionValidator
from auth.store import CredentialStore
from core.config import get_settings
from core.database import create_db_engine, init_db
from orgs.models import Organization
from orgs.store import OrganizationDirectory
from tasks.service import TaskService
from tasks.store import TaskStore

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters-long"
PASSWORD = "correct-horse-battery"

# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock returning a settable epoch-seconds value."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Unit-test fixtures -- one fresh database per test
# ---------------------------------------------------------------------------


@dataclass
class Core:
    """The authorization core wired on one engine, as api.main.init_state does."""

    credentials: CredentialStore
    directory: OrganizationDirectory
    recorder: SqlAuditRecorder
    issuer: SessionIssuer
    validator: SessionValidator
    evaluator: AccessEvaluator
    guard: AccessGuard
    tasks: TaskService
    clock: FakeClock

    def register(self, username: str, role: Role, org_id: str, password: str = PASSWORD):
        """Register an identity; returns (SessionToken, Identity)."""
        return self.issuer.register_identity(username, password, role, org_id)


@pytest.fixture
def engine():
    eng = create_db_engine("sqlite:///:memory:")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def core(engine, clock) -> Core:
    credentials = CredentialStore(engine)
    directory = OrganizationDirectory(engine)
    recorder = SqlAuditRecorder(engine)
    issuer = SessionIssuer(credentials, directory, recorder, TEST_SECRET, ttl_seconds=3600, clock=clock)
    validator = SessionValidator(credentials, TEST_SECRET, clock=clock)
    evaluator = AccessEvaluator(directory)
    guard = AccessGuard(validator, evaluator, recorder)
    return Core(
        credentials=credentials,
        directory=directory,
        recorder=recorder,
        issuer=issuer,
        validator=validator,
        evaluator=evaluator,
        guard=guard,
        tasks=TaskService(TaskStore(engine), guard, recorder),
        clock=clock,
    )


@pytest.fixture
def orgs(core: Core) -> dict[str, Organization]:
    """Two-level tree: root A with child B; unrelated root C."""
    a = core.directory.create(Organization(name="Org A"))
    b = core.directory.create(Organization(name="Org B", parent_id=a.id))
    c = core.directory.create(Organization(name="Org C"))
    return {"A": a, "B": b, "C": c}


# ---------------------------------------------------------------------------
# API fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(engine):
    """Return an async context manager that replaces the real lifespan.

    Wires the test engine into app.state through the same init_state() the
    production lifespan uses.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        init_state(app, engine, get_settings())
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient bound to an isolated shared-memory database.

    base_url uses localhost so TrustedHostMiddleware accepts the requests.
    """
    db_url = f"sqlite:///file:test_api_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    eng = create_db_engine(db_url)
    app.router.lifespan_context = _patch_lifespan(eng)

    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield client

    eng.dispose()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
