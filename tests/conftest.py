"""Shared fixtures for the API tests."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from kyndra.deps import identity, people_service, preferences, settings, store
from kyndra.main import app

NOW = "2024-03-10T09:00:00Z"


def _reset() -> None:
    store.clear()
    identity.clear()
    preferences.clear()
    people_service._backfill_attempted.clear()


@pytest.fixture(autouse=True)
def _clear_state():
    _reset()
    yield
    _reset()


@pytest.fixture()
def client():
    return TestClient(app)


def sign_in(client: TestClient, email: str = "ana@example.com") -> dict[str, str]:
    """Run the magic-link flow and return auth headers for the new session."""
    resp = client.post("/auth/magic-link", json={"email": email})
    assert resp.status_code == 200
    resp = client.get(resp.json()["callback_url"], follow_redirects=False)
    assert resp.status_code == 303
    return {"Authorization": f"Bearer {resp.cookies[settings.session_cookie]}"}


@pytest.fixture()
def auth(client) -> dict[str, str]:
    return sign_in(client)
