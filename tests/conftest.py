"""
tests/conftest.py -- Shared test fixtures for SongVault.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for auth + library
  - _patch_lifespan(): wires test stores and a fixed-secret codec into
    app.state, bypassing real startup
  - api_client: module-scoped TestClient plus one pre-registered user and token
  - user_store / song_store / codec / clock: unit-test building blocks

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the TestClient because it runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. Unit-test stores never leave the test thread, so they use
plain sqlite:///:memory:.

DEBUG and BCRYPT_ROUNDS must be set before any api/ import: api/main.py reads
settings at import time, and production mode requires a SECRET_KEY.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.store import UserStore
from auth.tokens import TokenCodec
from library.store import SongStore

TEST_SECRET = "songvault-test-secret-0123456789abcdef"
TEST_ROUNDS = 4  # bcrypt minimum; keeps the suite fast


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FrozenClock:
    """Callable clock for TokenCodec that only moves when told to."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, SongStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    library_url = f"sqlite:///file:test_library_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=auth_url, bcrypt_rounds=TEST_ROUNDS), SongStore(db_url=library_url)


def _patch_lifespan(user_store: UserStore, song_store: SongStore, codec: TokenCodec):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.song_store = song_store
        app.state.token_codec = codec
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, token, user_id) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers and the real auth gate but use isolated in-memory
    stores and a codec with a known secret. A user "testuser" (password
    "testpass123") is registered up front and its token returned.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store, song_store = _make_test_stores(suffix)
    codec = TokenCodec(TEST_SECRET, expire_seconds=3600)

    user = user_store.register("testuser", "testuser@example.com", "testpass123")
    token = codec.issue(user.id)

    app.router.lifespan_context = _patch_lifespan(user_store, song_store, codec)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, user.id

    user_store.close()
    song_store.close()


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:", bcrypt_rounds=TEST_ROUNDS)
    yield store
    store.close()


@pytest.fixture
def song_store() -> Generator[SongStore, None, None]:
    store = SongStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def codec(clock: FrozenClock) -> TokenCodec:
    """Codec with a fixed secret, a 7-day window and a frozen clock."""
    return TokenCodec(TEST_SECRET, expire_seconds=7 * 24 * 3600, clock=clock)
