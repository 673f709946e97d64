"""
tests/conftest.py -- Shared test fixtures for tokenward.

This module provides:
  - settings: a debug Settings object with the cheapest bcrypt cost factor
  - make_stores(): isolated named shared-memory SQLite stores
  - notifier: a recording stand-in for ActivationMailer
  - service: AuthService wired to fresh stores with the USER role seeded
  - api_client: TestClient over the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because UserStore and SessionStore each own an engine, and TestClient runs
handlers on another thread. The named URI format shares one in-memory
database across all connections in the process.

The DEBUG env var must be set before any api/ import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import asyncio
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
from auth.service import AuthService
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class RecordingNotifier:
    """Collects (email, activation_link) pairs instead of sending mail."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def notify_activation(self, to_email: str, link: str) -> None:
        self.sent.append((to_email, link))

    async def drain(self) -> None:
        return None

    def link_for(self, email: str) -> str:
        return next(link for to, link in reversed(self.sent) if to == email)


def make_test_settings(**overrides) -> Settings:
    values = {
        "debug": True,
        "secret_key": TEST_SECRET,
        "api_url": "http://testserver",
        "password_hash_rounds": 4,
    }
    values.update(overrides)
    return Settings(**values)


def make_stores(name: str | None = None) -> tuple[UserStore, SessionStore]:
    """Create a UserStore and SessionStore over the same private in-memory DB."""
    db_name = name or f"test_auth_{uuid.uuid4().hex}"
    url = f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true"
    return UserStore(url), SessionStore(url)


def run(coro):
    """Drive one AuthService coroutine to completion from a sync test."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Function-scoped fixtures -- a fresh database per test
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return make_test_settings()


@pytest.fixture
def stores() -> Generator[tuple[UserStore, SessionStore], None, None]:
    users, sessions = make_stores()
    yield users, sessions
    sessions.close()
    users.close()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(settings, stores, notifier) -> AuthService:
    users, sessions = stores
    users.ensure_role("USER")
    return AuthService(settings, users, sessions, TokenService(settings), notifier)


# ---------------------------------------------------------------------------
# Module-scoped API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(settings: Settings, service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the test AuthService and its stores into app.state so TestClient
    routes hit isolated in-memory databases and never send mail.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.user_store = service.users
        app.state.session_store = service.sessions
        app.state.auth_service = service
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_app() -> Generator[tuple[TestClient, RecordingNotifier], None, None]:
    """Yield (client, notifier) over the real app with isolated stores."""
    settings = make_test_settings()
    users, sessions = make_stores()
    users.ensure_role("USER")
    notifier = RecordingNotifier()
    service = AuthService(settings, users, sessions, TokenService(settings), notifier)

    app.router.lifespan_context = _patch_lifespan(settings, service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, notifier

    sessions.close()
    users.close()


@pytest.fixture
def api_client(api_app) -> tuple[TestClient, RecordingNotifier]:
    """The module's TestClient with an empty cookie jar."""
    client, notifier = api_app
    client.cookies.clear()
    return client, notifier
