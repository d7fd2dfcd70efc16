"""
tests/conftest.py -- Shared test fixtures for bros-auth.

This module provides:
  - engine / user_store / session_store / session_manager / jwt_codec:
    isolated in-memory auth components for unit tests
  - alice / bob: pre-created users (password "s3cret" / "hunter22")
  - _patch_lifespan(): wires test components into app.state, bypassing real startup
  - api_client: TestClient against the real FastAPI app for integration tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API client because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. Unit tests run on one thread, so plain :memory: is fine.

The DEBUG env var must be set before any api/core import so get_settings()
auto-generates JWT_SECRET in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate JWT_SECRET in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app, configure_auth
from auth.models import User
from auth.sessions import SessionManager
from auth.store import SessionStore, UserStore, build_engine
from auth.tokens import JwtCodec, hash_password
from core.config import Settings

TEST_SECRET = "test-secret-key-for-bros-auth-tests-0123456789"

# bcrypt is deliberately slow; hash the fixture passwords once per session.
_ALICE_HASH = hash_password("s3cret")
_BOB_HASH = hash_password("hunter22")


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    eng = build_engine("sqlite:///:memory:")
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def session_store(engine) -> SessionStore:
    return SessionStore(engine)


@pytest.fixture
def session_manager(session_store) -> SessionManager:
    return SessionManager(session_store, expires_in_days=7)


@pytest.fixture
def jwt_secret() -> str:
    return TEST_SECRET


@pytest.fixture
def jwt_codec(jwt_secret) -> JwtCodec:
    return JwtCodec(jwt_secret, expires_in_seconds=60)


@pytest.fixture
def alice(user_store) -> User:
    user_id = user_store.create_user(User(username="alice", hashed_password=_ALICE_HASH))
    return user_store.get_by_id(user_id)


@pytest.fixture
def bob(user_store) -> User:
    user_id = user_store.create_user(User(username="bob", hashed_password=_BOB_HASH))
    return user_store.get_by_id(user_id)


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(settings: Settings, db_url: str):
    """Return an async context manager that replaces the real lifespan.

    Builds the auth object graph against an isolated test DB and skips the
    background purge task.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        configure_auth(app, settings, build_engine(db_url))
        app.state.purge_task = None
        yield
        app.state.engine.dispose()

    return test_lifespan


@pytest.fixture
def api_client() -> Generator[tuple[TestClient, User], None, None]:
    """Yield (client, alice) for API integration tests.

    Each test gets its own named shared-memory DB so cookies, sessions, and
    users never leak between tests. alice signs in with password "s3cret".
    """
    db_url = f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    settings = Settings(debug=True, jwt_secret=TEST_SECRET, session_purge_interval_seconds=0)

    app.router.lifespan_context = _patch_lifespan(settings, db_url)

    with TestClient(app, raise_server_exceptions=True) as client:
        users: UserStore = app.state.user_store
        user_id = users.create_user(User(username="alice", hashed_password=_ALICE_HASH))
        yield client, users.get_by_id(user_id)
