"""
tests/conftest.py -- Shared fixtures for the AskHub accounts test suite.

This module provides:
  - settings: Settings with a fixed signing key and the minimum bcrypt cost
  - clock: a controllable UTC clock so tests can step past session expiry
  - db: an isolated file-backed SQLite AuthDatabase per test
  - manager: AuthSessionManager wired to the three above
  - alice / admin: registered accounts (password "pw123" / "adminpass")

Design: the db fixture uses a temp-file SQLite database rather than plain
:memory:. FastAPI's TestClient and the concurrency tests run code on worker
threads, and a plain :memory: database is per-connection, so each worker
thread would see a blank schema.

The DEBUG env var must be set before any core/auth import so get_settings()
(used by main.py) auto-generates SECRET_KEY instead of raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

# CRITICAL: Set DEBUG before any auth/core import.
os.environ.setdefault("DEBUG", "true")

import pytest

from auth.models import Account
from auth.service import AuthSessionManager
from auth.store import AuthDatabase
from core.config import Settings

TEST_SECRET_KEY = "test-secret-key-0123456789abcdef0123456789"


class FakeClock:
    """Callable clock returning a fixed instant until moved."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def settings() -> Settings:
    return Settings(debug=True, secret_key=TEST_SECRET_KEY, bcrypt_rounds=4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def db(tmp_path) -> Generator[AuthDatabase, None, None]:
    database = AuthDatabase(f"sqlite:///{tmp_path / 'accounts.db'}")
    yield database
    database.close()


@pytest.fixture
def manager(db: AuthDatabase, settings: Settings, clock: FakeClock) -> AuthSessionManager:
    return AuthSessionManager(db, settings, clock=clock)


@pytest.fixture
def alice(manager: AuthSessionManager) -> Account:
    return manager.sign_up(Account(first_name="Alice"), "alice", "a@x.com", "pw123")


@pytest.fixture
def admin(manager: AuthSessionManager) -> Account:
    return manager.sign_up(Account(role="admin"), "root", "root@x.com", "adminpass")
