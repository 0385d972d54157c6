"""
Global fixtures for all unit tests.

Upstream (Vincere) and downstream (ActiveCampaign) HTTP is simulated with
httpx.MockTransport so no test ever leaves the process. Handlers are plain
functions taking an httpx.Request and returning an httpx.Response.

These fixtures apply to ALL tests in tests/unit/.
"""

import os

import pytest

# Set test environment BEFORE any imports to prevent settings from loading real values
os.environ["ENVIRONMENT"] = "development"

from recruit_sync.services.token_store import InMemoryTokenStore

OWNER = "owner-1"


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """
    Isolate test environment from real credentials and configurations.

    Prevents a developer's .env from pointing tests at real tenants.
    """
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.setenv("VINCERE_API_KEY", "test-api-key")
    monkeypatch.setenv("AC_API_TOKEN", "test-ac-token")


@pytest.fixture
def connected_store():
    """Factory for a token store holding credentials for OWNER."""
    async def build(id_token: str = "idt-1", refresh_token: str = "rt-1", owner: str = OWNER):
        store = InMemoryTokenStore()
        if id_token:
            await store.save_id_token(owner, id_token)
        if refresh_token:
            await store.save_refresh_token(owner, refresh_token)
        return store
    return build

