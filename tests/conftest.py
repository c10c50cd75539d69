"""
tests/conftest.py -- Shared test fixtures for the auth service tests.

This module provides:
  - make_settings(): Settings with a fixed signing key and Google configured
  - StubGoogle: GoogleOAuth whose exchange_code() returns a primed result
  - service: AuthService over in-memory SQLite + fakeredis (unit tests)
  - harness_factory: builds TestClient harnesses around create_app() with a
    patched lifespan that wires isolated stores into app.state; keyword
    arguments override Settings fields (integration tests)
  - harness: the default-settings harness

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the TestClient because route handlers run in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. Each harness gets a unique name so tests never share accounts.

Every app builds its own rate limiter from its Settings, so counters never
leak between tests.

The DEBUG env var is set before any api/ import so a Settings() built without
an explicit SECRET_KEY (get_settings(), create_app() with no arguments)
generates a dev key instead of raising.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import ExitStack, asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import fakeredis
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.main import build_auth_service, create_app
from auth.oauth import ExchangeResult, GoogleOAuth
from auth.service import AuthService
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.config import Settings

TEST_SECRET = "test-signing-key-0123456789abcdef0123456789"
FRONTEND = "http://frontend.test"


def make_settings(**overrides) -> Settings:
    values = {
        "debug": True,
        "secret_key": TEST_SECRET,
        "frontend_url": FRONTEND,
        "google_client_id": "google-client-id",
        "google_client_secret": "google-client-secret",
        "google_callback_url": "http://testserver/auth/google/callback",
        "session_ttl_seconds": 3600,
        "token_expire_seconds": 3600,
    }
    values.update(overrides)
    return Settings(**values)


class StubGoogle(GoogleOAuth):
    """GoogleOAuth with a canned exchange result; records the codes it saw."""

    def __init__(self) -> None:
        super().__init__("google-client-id", "google-client-secret", "http://testserver/auth/google/callback")
        self.result = ExchangeResult(error="stub not primed")
        self.codes: list[str] = []

    async def exchange_code(self, code: str) -> ExchangeResult:
        self.codes.append(code)
        return self.result


def make_sessions(ttl: int = 3600) -> SessionStore:
    """SessionStore over a private fake Redis server."""
    return SessionStore(fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True), ttl=ttl)


@pytest.fixture
def service() -> Generator[AuthService, None, None]:
    """AuthService over a private in-memory user store and a fake Redis."""
    users = UserStore("sqlite:///:memory:")
    sessions = make_sessions()
    yield AuthService(users, sessions, TokenCodec(TEST_SECRET, 3600))
    users.close()


@dataclass
class Harness:
    client: TestClient
    app: FastAPI
    users: UserStore
    sessions: SessionStore
    google: StubGoogle


def _patch_lifespan(settings: Settings, users: UserStore, sessions: SessionStore, google: StubGoogle):
    """Return a lifespan that publishes pre-built test stores on app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = users
        app.state.session_store = sessions
        app.state.auth_service = build_auth_service(settings, users, sessions)
        app.state.google = google
        yield

    return test_lifespan


@pytest.fixture
def harness_factory() -> Generator[Callable[..., Harness], None, None]:
    """Yield a builder of Harnesses around fresh apps with isolated stores.

    Keyword arguments override make_settings() fields. follow_redirects=False
    so the OAuth tests can assert on Location headers.
    """
    with ExitStack() as stack:

        def build(**overrides) -> Harness:
            settings = make_settings(**overrides)
            users = UserStore(f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
            stack.callback(users.close)
            sessions = make_sessions(settings.session_ttl_seconds)
            google = StubGoogle()

            app = create_app(settings, _patch_lifespan(settings, users, sessions, google))
            client = stack.enter_context(TestClient(app, follow_redirects=False, raise_server_exceptions=True))
            return Harness(client, app, users, sessions, google)

        yield build


@pytest.fixture
def harness(harness_factory) -> Harness:
    return harness_factory()
