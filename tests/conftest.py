"""
tests/conftest.py -- Shared test fixtures for MedTrack tests.

This module provides:
  - user_store / prescription_store: fresh in-memory stores per test
  - issuer / auth_service: token issuer and AuthService over user_store
  - api: an ApiHarness wrapping a TestClient whose app.state points at
    isolated in-memory stores (one database per test module)

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for the
API fixture because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. The named URI format shares one in-memory instance
across all connections in the same process.

Environment variables must be set before any api/auth/core import so
get_settings() sees them: DEBUG lets a missing secret slide, BCRYPT_ROUNDS=4
keeps hashing fast, and rate limiting is off because every TestClient request
comes from the same address (test_rate_limits.py switches it back on).
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-medtrack-suite-0123456789abcdef")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenIssuer
from pharmacy.store import PrescriptionStore

TEST_SECRET = "unit-test-signing-secret-0123456789abcdef0123456789"
TEST_ROUNDS = 4

_counter = itertools.count(1)


def unique_identity() -> dict:
    """Return signup fields whose email/phone/aadhaar collide with nothing else."""
    n = next(_counter)
    return {
        "name": f"User {n}",
        "phone": f"9{n:09d}",
        "email": f"user{n}@example.com",
        "aadhaar": f"{n:012d}",
        "password": f"pw-{n}-secret",
    }


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def new_identity():
    """Factory fixture: call it to get a fresh set of unique signup fields."""
    return unique_identity


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def prescription_store() -> Generator[PrescriptionStore, None, None]:
    store = PrescriptionStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(TEST_SECRET)


@pytest.fixture
def auth_service(user_store: UserStore, issuer: TokenIssuer) -> AuthService:
    return AuthService(user_store, issuer, bcrypt_rounds=TEST_ROUNDS)


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


@dataclass
class ApiHarness:
    """TestClient plus the stores and issuer wired into app.state."""

    client: TestClient
    users: UserStore
    prescriptions: PrescriptionStore
    issuer: TokenIssuer

    def signup(self, role: str = "patient", **overrides) -> dict:
        """POST /auth/signup with fresh unique fields; return the JSON body."""
        body = {**unique_identity(), "role": role, **overrides}
        resp = self.client.post("/auth/signup", json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()

    @staticmethod
    def bearer(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}


def _patch_lifespan(users: UserStore, prescriptions: PrescriptionStore, issuer: TokenIssuer):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so routes see isolated
    in-memory databases rather than the configured DATABASE_URL.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = users
        app.state.prescription_store = prescriptions
        app.state.token_issuer = issuer
        app.state.auth_service = AuthService(users, issuer, bcrypt_rounds=TEST_ROUNDS)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api(request) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness backed by a per-module shared-memory database."""
    db_name = request.module.__name__.replace(".", "_")
    db_url = f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true"
    users = UserStore(db_url)
    prescriptions = PrescriptionStore(db_url)
    token_issuer = TokenIssuer(TEST_SECRET)

    app.router.lifespan_context = _patch_lifespan(users, prescriptions, token_issuer)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(client=client, users=users, prescriptions=prescriptions, issuer=token_issuer)

    prescriptions.close()
    users.close()
