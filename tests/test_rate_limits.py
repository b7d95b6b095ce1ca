"""
tests/test_rate_limits.py -- Integration tests for per-route rate limits.

The rest of the suite runs with RATE_LIMIT_ENABLED=false because every
TestClient request comes from the same address. These tests switch the shared
limiter on, clear its counters, and drive each limited route one request past
its budget.

Coverage:
  - POST /auth/login: LOGIN_RATE_LIMIT per client, then 429
  - GET /pharmacy/prescriptions/patient/{medTrackId}: 60/minute, then 429
  - POST /pharmacy/dispense/{id}: 30/minute, then 429
  - 429 body is {"message": "Too many requests"} with a Retry-After header
  - Limits are per route: exhausting login leaves search untouched

Fixtures used (from conftest.py):
  - api: ApiHarness with client, users, prescriptions, issuer
"""

from __future__ import annotations

from collections.abc import Generator

import pytest
from httpx import Response

from api.limiter import limiter
from conftest import ApiHarness, unique_identity
from core.config import get_settings


def _budget(limit: str) -> int:
    """'10/minute' -> 10"""
    return int(limit.split("/")[0].strip())


def _assert_rate_limited(resp: Response) -> None:
    assert resp.status_code == 429, f"Expected 429, got {resp.status_code}: {resp.text}"
    assert resp.json() == {"message": "Too many requests"}
    assert int(resp.headers["Retry-After"]) > 0


@pytest.fixture
def limited(api: ApiHarness, monkeypatch) -> Generator[ApiHarness, None, None]:
    """The api harness with the shared limiter switched on and its counters cleared."""
    limiter.reset()
    monkeypatch.setattr(limiter, "enabled", True)
    yield api
    limiter.reset()


@pytest.fixture
def pharmacist_headers(api: ApiHarness) -> dict:
    return api.bearer(api.signup(role="pharmacist")["token"])


class TestLoginLimit:
    def test_login_blocked_after_budget(self, limited: ApiHarness) -> None:
        body = unique_identity()
        limited.client.post("/auth/signup", json=body)
        attempt = {"identifier": body["email"], "password": "wrong-guess"}

        budget = _budget(get_settings().login_rate_limit)
        statuses = [limited.client.post("/auth/login", json=attempt).status_code for _ in range(budget)]
        assert statuses == [400] * budget

        _assert_rate_limited(limited.client.post("/auth/login", json=attempt))

    def test_correct_password_also_blocked(self, limited: ApiHarness) -> None:
        body = unique_identity()
        limited.client.post("/auth/signup", json=body)
        for _ in range(_budget(get_settings().login_rate_limit)):
            limited.client.post("/auth/login", json={"identifier": body["email"], "password": "nope"})

        resp = limited.client.post("/auth/login", json={"identifier": body["email"], "password": body["password"]})
        _assert_rate_limited(resp)

    def test_limits_are_per_route(self, limited: ApiHarness, pharmacist_headers: dict) -> None:
        for _ in range(_budget(get_settings().login_rate_limit) + 1):
            limited.client.post("/auth/login", json={"identifier": "a@example.com", "password": "x"})

        resp = limited.client.get("/pharmacy/prescriptions/patient/MT00000000", headers=pharmacist_headers)
        assert resp.status_code == 404


class TestPharmacyLimits:
    def test_search_blocked_after_sixty(self, limited: ApiHarness, pharmacist_headers: dict) -> None:
        url = "/pharmacy/prescriptions/patient/MT00000000"
        statuses = [limited.client.get(url, headers=pharmacist_headers).status_code for _ in range(60)]
        assert statuses == [404] * 60
        _assert_rate_limited(limited.client.get(url, headers=pharmacist_headers))

    def test_dispense_blocked_after_thirty(self, limited: ApiHarness, pharmacist_headers: dict) -> None:
        url = "/pharmacy/dispense/999999"
        statuses = [limited.client.post(url, headers=pharmacist_headers).status_code for _ in range(30)]
        assert statuses == [404] * 30
        _assert_rate_limited(limited.client.post(url, headers=pharmacist_headers))


def test_limiter_off_by_default_in_suite(api: ApiHarness) -> None:
    """Sanity check on the suite setup: other modules never see 429s."""
    assert limiter.enabled is False
