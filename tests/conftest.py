"""
tests/conftest.py -- Shared test fixtures for garage manager integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + workshop data
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api: module-scoped ApiHarness (TestClient + stores + one token per role)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any auth module import so get_settings()
does not refuse to start without DATABASE_URL.
"""

from __future__ import annotations

import asyncio
import os
import re
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

# CRITICAL: set before any api/auth/core import; get_settings() is cached on first call.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SECRET_KEY", "garage-test-secret-key-0123456789abcdef")

import pytest
from fastapi.testclient import TestClient

from api.limiter import WriteRateLimiter, limiter
from asgi import app
from auth.models import User
from auth.store import UserStore
from auth.tokens import hash_password, identity_for, issue_token
from cache.store import MemoryExpiringStore
from shop.store import ShopStore

PASSWORD = "testpass123"

ROLE_EMAILS = {
    "owner": "owner@test.com",
    "receptionist": "reception@test.com",
    "mechanic": "mechanic@test.com",
    "customer": "customer@test.com",
}


@dataclass
class ApiHarness:
    client: TestClient
    user_store: UserStore
    shop_store: ShopStore
    reset_codes: MemoryExpiringStore
    tokens: dict[str, str] = field(default_factory=dict)

    def headers(self, role: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.tokens[role]}"}


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, ShopStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    users_url = f"sqlite:///file:test_users_{db_suffix}?mode=memory&cache=shared&uri=true"
    shop_url = f"sqlite:///file:test_shop_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=users_url), ShopStore(db_url=shop_url)


def _patch_lifespan(user_store: UserStore, shop_store: ShopStore, reset_codes: MemoryExpiringStore):
    """Return an async context manager that replaces the real lifespan.

    The write limiter gets a cap high enough that no ordinary test reaches it.
    The purge_task is a long-sleeping coroutine; a real asyncio.Task is
    required because shutdown calls .cancel() on it.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.shop_store = shop_store
        app.state.reset_codes = reset_codes
        app.state.write_limiter = WriteRateLimiter(max_requests=100000, window_seconds=900)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


def _seed_role_users(user_store: UserStore) -> dict[str, str]:
    """Create one account per role and return a long-lived token for each."""
    tokens = {}
    for role, email in ROLE_EMAILS.items():
        user_id = user_store.create_user(
            User(name=f"Test {role.title()}", email=email, role=role, hashed_password=hash_password(PASSWORD))
        )
        tokens[role] = issue_token(identity_for(user_store.get_by_id(user_id)), expire_seconds=3600)
    return tokens


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api(request) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness backed by stores private to the requesting test module."""
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store, shop_store = _make_test_stores(suffix)
    reset_codes = MemoryExpiringStore()
    tokens = _seed_role_users(user_store)

    app.router.lifespan_context = _patch_lifespan(user_store, shop_store, reset_codes)
    limiter.reset()

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(client, user_store, shop_store, reset_codes, tokens)

    shop_store.close()
    user_store.close()


@pytest.fixture()
def shop_store(request) -> Generator[ShopStore, None, None]:
    """A fresh ShopStore per test, for store-level tests that need no HTTP layer."""
    name = re.sub(r"\W", "_", request.node.name)
    store = ShopStore(db_url=f"sqlite:///file:shop_{name}?mode=memory&cache=shared&uri=true")
    yield store
    store.close()
