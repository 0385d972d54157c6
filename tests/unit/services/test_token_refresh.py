"""
Unit tests for the Vincere token refresher and the refresh-once guard.

The guard must refresh at most once per call and always return the retried
response, whatever its status.
"""

from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs

import httpx
import pytest

from recruit_sync.services.token_refresh import (
    CredentialRefresher,
    TokenRefreshGuard,
    VincereTokenRefresher,
)
from recruit_sync.services.token_store import InMemoryTokenStore

OWNER = "owner-1"
ID_BASE = "https://id.vincere.io/"


def _token_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class StubRefresher(CredentialRefresher):
    """Refresher that stores a fixed new token (or fails)."""

    def __init__(self, store: InMemoryTokenStore, succeed: bool = True, new_token: str = "idt-fresh"):
        self.store = store
        self.succeed = succeed
        self.new_token = new_token
        self.calls = 0

    async def refresh(self, owner_key: str) -> bool:
        self.calls += 1
        if self.succeed:
            await self.store.save_id_token(owner_key, self.new_token)
        return self.succeed


class TestVincereTokenRefresher:
    """Tests for the OAuth2 refresh call."""

    @pytest.mark.asyncio
    async def test_refresh_posts_form_and_stores_tokens(self, connected_store):
        store = await connected_store(id_token="idt-old", refresh_token="rt-old")
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id_token": "idt-new", "refresh_token": "rt-new"})

        async with _token_client(handler) as client:
            refresher = VincereTokenRefresher(client, store, ID_BASE, "client-123")
            assert await refresher.refresh(OWNER) is True

        request = seen[0]
        assert str(request.url) == "https://id.vincere.io/oauth2/token"
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        form = parse_qs(request.content.decode())
        assert form == {
            "grant_type": ["refresh_token"],
            "client_id": ["client-123"],
            "refresh_token": ["rt-old"],
        }
        assert await store.get_id_token(OWNER) == "idt-new"
        assert await store.get_refresh_token(OWNER) == "rt-new"

    @pytest.mark.asyncio
    async def test_refresh_keeps_refresh_token_when_not_rotated(self, connected_store):
        store = await connected_store(refresh_token="rt-keep")

        def handler(request):
            return httpx.Response(200, json={"id_token": "idt-new"})

        async with _token_client(handler) as client:
            assert await VincereTokenRefresher(client, store, ID_BASE, "c").refresh(OWNER) is True

        assert await store.get_refresh_token(OWNER) == "rt-keep"

    @pytest.mark.asyncio
    async def test_no_refresh_token_skips_network(self):
        store = InMemoryTokenStore()
        handler = AsyncMock()

        async with _token_client(lambda r: httpx.Response(200)) as client:
            with patch.object(client, "post", handler):
                assert await VincereTokenRefresher(client, store, ID_BASE, "c").refresh(OWNER) is False

        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_2xx_returns_false(self, connected_store):
        store = await connected_store(id_token="idt-old")

        async with _token_client(lambda r: httpx.Response(400, json={"error": "invalid_grant"})) as client:
            assert await VincereTokenRefresher(client, store, ID_BASE, "c").refresh(OWNER) is False

        assert await store.get_id_token(OWNER) == "idt-old"

    @pytest.mark.asyncio
    async def test_missing_id_token_returns_false(self, connected_store):
        store = await connected_store()

        async with _token_client(lambda r: httpx.Response(200, json={"access_token": "x"})) as client:
            assert await VincereTokenRefresher(client, store, ID_BASE, "c").refresh(OWNER) is False

    @pytest.mark.asyncio
    async def test_non_json_body_returns_false(self, connected_store):
        store = await connected_store()

        async with _token_client(lambda r: httpx.Response(200, text="<html>")) as client:
            assert await VincereTokenRefresher(client, store, ID_BASE, "c").refresh(OWNER) is False

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried_then_reported(self, connected_store):
        store = await connected_store()
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        async with _token_client(handler) as client:
            refresher = VincereTokenRefresher(client, store, ID_BASE, "c")
            with patch("asyncio.sleep", new=AsyncMock()):
                assert await refresher.refresh(OWNER) is False

        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_transient_transport_error_recovers(self, connected_store):
        store = await connected_store()
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(200, json={"id_token": "idt-new"})

        async with _token_client(handler) as client:
            refresher = VincereTokenRefresher(client, store, ID_BASE, "c")
            with patch("asyncio.sleep", new=AsyncMock()):
                assert await refresher.refresh(OWNER) is True

        assert len(attempts) == 2
        assert await store.get_id_token(OWNER) == "idt-new"


class TestTokenRefreshGuard:
    """Tests for the refresh-once wrapper."""

    @pytest.mark.asyncio
    async def test_success_passes_through_without_refresh(self, connected_store):
        store = await connected_store(id_token="idt-1")
        refresher = StubRefresher(store)
        guard = TokenRefreshGuard(store, refresher)
        tokens = []

        async def perform(id_token):
            tokens.append(id_token)
            return httpx.Response(200, json={"ok": True})

        response = await guard.call(OWNER, perform)

        assert response.status_code == 200
        assert tokens == ["idt-1"]
        assert refresher.calls == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_failure_refreshes_and_retries_with_new_token(self, connected_store, status):
        store = await connected_store(id_token="idt-stale")
        refresher = StubRefresher(store, new_token="idt-fresh")
        guard = TokenRefreshGuard(store, refresher)
        tokens = []

        async def perform(id_token):
            tokens.append(id_token)
            return httpx.Response(status if len(tokens) == 1 else 200)

        response = await guard.call(OWNER, perform)

        assert response.status_code == 200
        assert tokens == ["idt-stale", "idt-fresh"]
        assert refresher.calls == 1

    @pytest.mark.asyncio
    async def test_second_auth_failure_is_returned_not_looped(self, connected_store):
        store = await connected_store()
        refresher = StubRefresher(store)
        guard = TokenRefreshGuard(store, refresher)
        calls = []

        async def perform(id_token):
            calls.append(id_token)
            return httpx.Response(401)

        response = await guard.call(OWNER, perform)

        assert response.status_code == 401
        assert len(calls) == 2
        assert refresher.calls == 1

    @pytest.mark.asyncio
    async def test_failed_refresh_returns_original_response(self, connected_store):
        store = await connected_store()
        refresher = StubRefresher(store, succeed=False)
        guard = TokenRefreshGuard(store, refresher)
        calls = []

        async def perform(id_token):
            calls.append(id_token)
            return httpx.Response(403, text="forbidden")

        response = await guard.call(OWNER, perform)

        assert response.status_code == 403
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self, connected_store):
        store = await connected_store()
        refresher = StubRefresher(store)
        guard = TokenRefreshGuard(store, refresher)

        async def perform(id_token):
            return httpx.Response(500)

        response = await guard.call(OWNER, perform)

        assert response.status_code == 500
        assert refresher.calls == 0

    @pytest.mark.asyncio
    async def test_has_credentials(self, connected_store):
        guard = TokenRefreshGuard(await connected_store(id_token="", refresh_token="rt"), StubRefresher(None))
        assert await guard.has_credentials(OWNER) is True

        empty = InMemoryTokenStore()
        assert await TokenRefreshGuard(empty, StubRefresher(empty)).has_credentials(OWNER) is False
