"""
Vincere distribution list source.

Reads a distribution list's contacts through the slice endpoint:
GET /distributionlists/{list}/user/{user}/contacts/slice?slice_index=N
Each slice is {"content": [...], "last": bool, "totalElements"?: int}.
"""

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from recruit_sync.common.error_handling import UpstreamFetchError, body_excerpt, describe_response
from recruit_sync.services.token_refresh import TokenRefreshGuard

from . import SlicePage
from .vincere import VincereSource

logger = logging.getLogger(__name__)


class DistributionListSource(VincereSource):
    """Distribution list contacts, one slice per page."""

    TOTAL_HEADER = "x-vincere-total"

    def __init__(
        self,
        client: httpx.AsyncClient,
        guard: TokenRefreshGuard,
        api_base: str,
        api_key: str,
        owner_key: str,
        list_id: str,
        user_id: str,
    ):
        super().__init__(client, guard, api_base, api_key, owner_key)
        self.list_id = str(list_id)
        self.user_id = str(user_id)

    def get_source_name(self) -> str:
        return "distribution-list"

    def _slice_url(self) -> str:
        return (
            f"{self.api_base}/distributionlists/{quote(self.list_id, safe='')}"
            f"/user/{quote(self.user_id, safe='')}/contacts/slice"
        )

    def _parse_total(self, payload: dict, response: httpx.Response) -> Optional[int]:
        total = payload.get("totalElements")
        if isinstance(total, int) and not isinstance(total, bool):
            return total

        header_value = (response.headers.get(self.TOTAL_HEADER) or "").strip()
        if header_value:
            try:
                return int(float(header_value))
            except ValueError:
                logger.debug(f"Ignoring non-numeric {self.TOTAL_HEADER} header: {header_value!r}")
        return None

    async def fetch_page(self, index: int) -> SlicePage:
        response = await self._get(self._slice_url(), {"slice_index": index})

        if not response.is_success:
            raise UpstreamFetchError(
                describe_response("Vincere distribution list slice fetch failed", response),
                status_code=response.status_code,
                body=body_excerpt(response),
            )

        payload = self._json(response)
        if not isinstance(payload, dict):
            payload = {}

        content = payload.get("content")
        records = [r for r in content if isinstance(r, dict)] if isinstance(content, list) else []

        return SlicePage(
            records=records,
            last=bool(payload.get("last")),
            total=self._parse_total(payload, response),
        )
