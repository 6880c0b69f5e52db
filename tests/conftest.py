"""
tests/conftest.py -- Shared test fixtures for the back-office auth tests.

This module provides:
  - make_settings(): explicit Settings for tests (debug, cheap bcrypt)
  - make_store(): isolated named shared-memory AdminStore
  - api_client: TestClient over create_app() with one provisioned admin
  - reset_rate_limits: autouse -- clears slowapi counters between tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

DEBUG is set before any project import so scripts that call get_settings()
auto-generate SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator

# CRITICAL: Set DEBUG before any core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import create_app
from auth.models import AdminCredential
from auth.passwords import PasswordHasher
from auth.store import AdminStore
from core.config import Settings

TEST_SECRET_KEY = "test-secret-key-0123456789abcdef-0123456789"
ADMIN_IDENTIFIER = "admin"
ADMIN_PASSWORD = "correct-horse"

# Lowest cost bcrypt accepts -- keeps the suite fast. Debug mode permits it.
TEST_BCRYPT_ROUNDS = 4


def memory_db_url(name: str) -> str:
    return f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true"


def make_settings(db_suffix: str = "unit", **overrides) -> Settings:
    """Build Settings explicitly; never reads a developer's .env file."""
    values = {
        "debug": True,
        "secret_key": TEST_SECRET_KEY,
        "bcrypt_rounds": TEST_BCRYPT_ROUNDS,
        "token_expire_seconds": 3600,
        "database_url": memory_db_url(f"test_admins_{db_suffix}"),
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_store(db_suffix: str) -> AdminStore:
    """Create an isolated named shared-memory AdminStore."""
    return AdminStore(memory_db_url(f"test_admins_{db_suffix}"))


@pytest.fixture(autouse=True)
def reset_rate_limits() -> None:
    """Each test starts with a fresh login budget."""
    limiter.reset()


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, token, admin_id) for API integration tests.

    The app is built by the real create_app() factory; its lifespan opens
    the store on a per-module in-memory database. The admin "admin" /
    "correct-horse" is provisioned after startup and a token is issued
    through the app's own TokenService.
    """
    settings = make_settings(db_suffix=request.module.__name__.replace(".", "_"))
    app = create_app(settings)

    with TestClient(app, raise_server_exceptions=True) as client:
        hasher: PasswordHasher = app.state.hasher
        admin_id = app.state.admin_store.create_admin(
            AdminCredential(
                identifier=ADMIN_IDENTIFIER,
                secret_hash=hasher.hash(ADMIN_PASSWORD),
                name="Admin User",
                role="SUPER_ADMIN",
            )
        )
        token = app.state.tokens.issue(str(admin_id)).token
        yield client, token, admin_id
