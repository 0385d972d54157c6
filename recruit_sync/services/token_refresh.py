"""
Single-shot credential refresh for Vincere API calls.

Every Vincere request goes through TokenRefreshGuard.call(): the request is
issued once with the owner's current id token; on 401/403 the guard asks
the refresher for a new id token exactly once and, if that succeeds,
re-issues the request with the fresh token. The second response is returned
whatever its status, so a provider that keeps rejecting cannot cause a
refresh loop.
"""

import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .token_store import TokenStore

logger = logging.getLogger(__name__)

AUTH_FAILURE_STATUSES = frozenset({401, 403})

# Receives the current id token (may be None) and performs the HTTP call
RequestFn = Callable[[Optional[str]], Awaitable[httpx.Response]]


class CredentialRefresher(ABC):
    """Exchanges a stored refresh token for a new access credential."""

    @abstractmethod
    async def refresh(self, owner_key: str) -> bool:
        """Return True when a new credential was stored for the owner."""
        pass


class VincereTokenRefresher(CredentialRefresher):
    """
    Refreshes Vincere id tokens via the OAuth2 token endpoint.

    Rotated refresh tokens returned by the provider are persisted back to
    the token store.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        token_store: TokenStore,
        id_base: str,
        client_id: str,
    ):
        self.client = client
        self.token_store = token_store
        self.token_url = f"{(id_base or '').rstrip('/')}/oauth2/token"
        self.client_id = client_id

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=0.5, max=4),
        reraise=True,
    )
    async def _post_token(self, refresh_token: str) -> httpx.Response:
        return await self.client.post(
            self.token_url,
            data={
                "grant_type": "refresh_token",
                "client_id": self.client_id,
                "refresh_token": refresh_token,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

    async def refresh(self, owner_key: str) -> bool:
        refresh_token = await self.token_store.get_refresh_token(owner_key)
        if not refresh_token:
            logger.warning(f"No refresh token stored for {owner_key}; cannot refresh")
            return False

        try:
            response = await self._post_token(refresh_token)
        except httpx.HTTPError as e:
            logger.warning(f"Token endpoint unreachable for {owner_key}: {e}")
            return False

        if not response.is_success:
            logger.warning(f"Token refresh rejected for {owner_key} ({response.status_code})")
            return False

        try:
            payload = response.json()
        except ValueError:
            logger.warning(f"Token endpoint returned non-JSON body for {owner_key}")
            return False

        id_token = payload.get("id_token") if isinstance(payload, dict) else None
        if not id_token:
            logger.warning(f"Token endpoint returned no id_token for {owner_key}")
            return False

        await self.token_store.save_id_token(owner_key, id_token)
        if payload.get("refresh_token"):
            await self.token_store.save_refresh_token(owner_key, payload["refresh_token"])
            logger.info(f"Rotated refresh token for {owner_key}")

        logger.info(f"Refreshed Vincere id token for {owner_key}")
        return True


class TokenRefreshGuard:
    """Wraps upstream calls with one refresh-and-retry on 401/403."""

    def __init__(self, token_store: TokenStore, refresher: CredentialRefresher):
        self.token_store = token_store
        self.refresher = refresher

    async def has_credentials(self, owner_key: str) -> bool:
        """True when the owner has an id token or a refresh token to mint one."""
        if await self.token_store.get_id_token(owner_key):
            return True
        return bool(await self.token_store.get_refresh_token(owner_key))

    async def call(self, owner_key: str, perform_request: RequestFn) -> httpx.Response:
        id_token = await self.token_store.get_id_token(owner_key)
        response = await perform_request(id_token)

        if response.status_code not in AUTH_FAILURE_STATUSES:
            return response

        logger.info(f"Upstream returned {response.status_code} for {owner_key}; refreshing credentials")
        if not await self.refresher.refresh(owner_key):
            return response

        id_token = await self.token_store.get_id_token(owner_key)
        return await perform_request(id_token)
