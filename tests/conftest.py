"""
tests/conftest.py -- Shared test fixtures for Loverse.

This module provides:
  - settings:      a Settings instance with a fixed signing key
  - user_store:    UserStore on an isolated named shared-memory SQLite DB
  - sessions:      SessionStore on an in-memory SQLite DB
  - alice:         a registered user (password "correct-horse")
  - make_client(): TestClient factory wired through a patched lifespan
  - client:        default TestClient
  - digest_login(): run the full two-request Digest handshake

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
UserStore because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. SessionStore holds a single connection, so :memory: is enough.

The DEBUG env var must be set before api.main is imported so get_settings()
would auto-generate SECRET_KEY rather than raise if anything touches it.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any core/api import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app, wire_state
from auth.digest import build_authorization_header, derive_credential_hash, parse_authorization_header
from auth.models import User
from auth.sessions import SessionStore
from auth.store import UserStore
from core.config import Settings

TEST_SECRET = "loverse-test-secret-0123456789abcdef"
ALICE_PASSWORD = "correct-horse"


@pytest.fixture
def settings() -> Settings:
    return Settings(debug=True, secret_key=TEST_SECRET)


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore(f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    yield store
    store.close()


@pytest.fixture
def sessions() -> Generator[SessionStore, None, None]:
    store = SessionStore(":memory:", ttl=3600)
    yield store
    store.close()


@pytest.fixture
def alice(user_store: UserStore) -> User:
    uid = user_store.create_user(
        User(username="alice", ha1=derive_credential_hash("alice", ALICE_PASSWORD), nickname="Alice")
    )
    return user_store.get_by_id(uid)


def _patch_lifespan(settings: Settings, user_store: UserStore, sessions: SessionStore):
    """Return a lifespan that wires test stores into app.state.

    Same wiring as production (wire_state), minus the purge task.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        wire_state(app, settings, user_store, sessions)
        yield

    return test_lifespan


@pytest.fixture
def make_client(user_store: UserStore, sessions: SessionStore) -> Generator[Callable[..., TestClient], None, None]:
    """Yield a factory: make_client(settings=..., raise_server_exceptions=...) -> TestClient.

    Variants with strict sessions or nonce tracking pass their own Settings.
    Every client opened here is closed at teardown.
    """
    opened: list[TestClient] = []

    def factory(settings: Settings | None = None, raise_server_exceptions: bool = True) -> TestClient:
        app.router.lifespan_context = _patch_lifespan(
            settings or Settings(debug=True, secret_key=TEST_SECRET), user_store, sessions
        )
        client = TestClient(app, raise_server_exceptions=raise_server_exceptions)
        client.__enter__()
        opened.append(client)
        return client

    yield factory

    for client in opened:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client, settings: Settings) -> TestClient:
    return make_client(settings)


@pytest.fixture
def digest_login() -> Callable:
    """Return login(client, username, password, uri="/login") -> final response.

    Performs the real handshake: unauthenticated GET /login, parse the
    challenge, answer it, resubmit.
    """

    def login(client: TestClient, username: str, password: str, uri: str = "/login"):
        first = client.get("/login")
        assert first.status_code == 401
        challenge = parse_authorization_header(first.headers["www-authenticate"])
        header = build_authorization_header(username, password, "GET", uri, challenge)
        return client.get("/login", headers={"Authorization": header})

    return login
