"""
Shared plumbing for Vincere-backed record sources.

Builds the Vincere header set (id-token, x-api-key, bearer) and routes
every GET through the token refresh guard so an expired id token is
refreshed once per call.
"""

import logging
import re
from typing import Any, Dict, Optional

import httpx

from recruit_sync.common.error_handling import UpstreamFetchError
from recruit_sync.services.token_refresh import TokenRefreshGuard

from . import RecordSource

logger = logging.getLogger(__name__)

_API_VERSION_SUFFIX = re.compile(r"/api/v\d+$", re.IGNORECASE)


def vincere_api_base(base: str) -> str:
    """
    Normalise a tenant base URL so it ends in /api/vN.

    Examples:
        >>> vincere_api_base("https://acme.vincere.io/")
        'https://acme.vincere.io/api/v2'
        >>> vincere_api_base("https://acme.vincere.io/api/v3")
        'https://acme.vincere.io/api/v3'
    """
    b = (base or "").strip().rstrip("/")
    if not _API_VERSION_SUFFIX.search(b):
        b = f"{b}/api/v2"
    return b


class VincereSource(RecordSource):
    """Base class for sources that read from the Vincere tenant API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        guard: TokenRefreshGuard,
        api_base: str,
        api_key: str,
        owner_key: str,
    ):
        self.client = client
        self.guard = guard
        self.api_base = vincere_api_base(api_base)
        self.api_key = api_key
        self.owner_key = owner_key

    def _headers(self, id_token: Optional[str]) -> Dict[str, str]:
        token = id_token or ""
        return {
            "id-token": token,
            "x-api-key": self.api_key,
            "accept": "application/json",
            "Authorization": f"Bearer {token}",
        }

    async def _get(self, url: str, params: Dict[str, Any]) -> httpx.Response:
        async def perform(id_token: Optional[str]) -> httpx.Response:
            return await self.client.get(url, params=params, headers=self._headers(id_token))

        try:
            return await self.guard.call(self.owner_key, perform)
        except httpx.TransportError as e:
            raise UpstreamFetchError(f"Vincere request failed: {e}") from e

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            logger.warning(f"Vincere returned a non-JSON body ({response.status_code})")
            return {}
