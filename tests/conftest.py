"""
tests/conftest.py -- Shared test fixtures for authcore.

This module provides:
  - make_test_store(): isolated named shared-memory SQLite store
  - _patch_lifespan(): wires test collaborators into app.state, bypassing real startup
  - passwords / token_service: leaf services shared by unit tests
  - api_client: TestClient over the real app with an isolated store

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any api/ import so get_settings() can
auto-generate SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.passwords import PasswordService
from auth.secret_provider import CachedSecretProvider, SettingsSecretProvider
from auth.store import UserStore
from auth.tokens import TokenService

TEST_SECRET = "test-signing-secret-0123456789abcdef0123456789"
TEST_SECRET_NAME = "jwt-signing-secret"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_test_store(db_suffix: str | None = None) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules don't
                   share state. A random one is used when omitted.
    """
    suffix = db_suffix or uuid.uuid4().hex
    return UserStore(db_url=f"sqlite:///file:test_users_{suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_store: UserStore, passwords: PasswordService):
    """Return an async context manager that replaces the real lifespan.

    Wires a pre-created test store, password service and a fixed-secret
    provider into app.state so TestClient routes never touch the real
    database or secret source.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.passwords = passwords
        app.state.secret_name = TEST_SECRET_NAME
        app.state.secret_provider = CachedSecretProvider(SettingsSecretProvider(TEST_SECRET))
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Leaf services
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def passwords() -> PasswordService:
    """One PasswordService per session; construction runs a bcrypt hash."""
    return PasswordService()


@pytest.fixture
def token_service() -> TokenService:
    """TokenService signing with the same secret the test app uses."""
    return TokenService(TEST_SECRET.encode("utf-8"))


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = make_test_store()
    yield s
    s.close()


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request, passwords: PasswordService) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app with an isolated in-memory store.

    Tests hit real route handlers, dependencies and exception handlers. The
    store is per test module so registrations in one module never collide
    with another's.
    """
    user_store = make_test_store(request.module.__name__.replace(".", "_"))
    app.router.lifespan_context = _patch_lifespan(user_store, passwords)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    user_store.close()
