"""
tests/conftest.py -- Shared test fixtures for socialnet tests.

This module provides:
  - _make_test_stores(): isolated in-memory DBs for users + posts/comments
  - _patch_lifespan(): wires test stores and services into app.state,
    bypassing the real startup
  - client: TestClient over the real app with a fresh database per test
  - register_user: helper that registers an account through the API

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any api/ import so get_settings()
auto-generates the signing secrets instead of raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate JWT secrets in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService
from social.store import SocialStore

ACCESS_SECRET = "access-secret-for-tests-0123456789abcdef"
REFRESH_SECRET = "refresh-secret-for-tests-0123456789abcdef"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores() -> tuple[UserStore, SocialStore]:
    """Create stores over one uniquely named shared-memory SQLite database."""
    db_url = f"sqlite:///file:test_socialnet_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url), SocialStore(db_url)


def _patch_lifespan(user_store: UserStore, social_store: SocialStore, token_service: TokenService):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.social_store = social_store
        app.state.token_service = token_service
        app.state.auth_service = AuthService(user_store, token_service, max_refresh_tokens=20)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_token_service() -> Callable[..., TokenService]:
    """Factory for TokenService instances sharing the app's test secrets.

    Pass a negative expiry to mint tokens that are already expired.
    """

    def factory(access_expire_seconds: int = 900, refresh_expire_seconds: int = 604800) -> TokenService:
        return TokenService(
            access_secret=ACCESS_SECRET,
            refresh_secret=REFRESH_SECRET,
            access_expire_seconds=access_expire_seconds,
            refresh_expire_seconds=refresh_expire_seconds,
        )

    return factory


@pytest.fixture
def token_service(make_token_service) -> TokenService:
    return make_token_service()


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    """Plain in-memory UserStore for unit tests."""
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def client(token_service: TokenService) -> Generator[TestClient, None, None]:
    """TestClient over the real app with isolated stores for this test."""
    user_store, social_store = _make_test_stores()
    app.router.lifespan_context = _patch_lifespan(user_store, social_store, token_service)

    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client

    social_store.close()
    user_store.close()


@pytest.fixture
def register_user(client: TestClient) -> Callable[..., dict]:
    """Register an account via POST /auth/register and return the JSON body.

    The returned dict also carries "headers" -- a ready Authorization header.
    """

    def _register(username: str = "alice", email: str = "alice@x.com", password: str = "secret123", **extra) -> dict:
        resp = client.post(
            "/auth/register",
            json={"username": username, "email": email, "password": password, **extra},
        )
        assert resp.status_code == 201, f"Registration failed: {resp.status_code} {resp.text}"
        data = resp.json()
        data["headers"] = {"Authorization": f"Bearer {data['accessToken']}"}
        return data

    return _register
