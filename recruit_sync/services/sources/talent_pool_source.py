"""
Vincere talent pool source.

Talent pools have no slice endpoint; candidates are read through the
candidate search with offset pagination (rows/start). Tenants disagree on
the name of the pool filter parameter, so the first page probes the known
spellings and the rest of the run reuses whichever one returned records.
"""

import logging
from typing import Any, List, Optional

import httpx

from recruit_sync.common.error_handling import UpstreamFetchError, body_excerpt, describe_response
from recruit_sync.services.token_refresh import TokenRefreshGuard

from . import SlicePage
from .vincere import VincereSource

logger = logging.getLogger(__name__)

POOL_FILTER_KEYS = ("talent_pool_id", "talentpool_id", "talentPoolId", "pool_id")
RECORD_LIST_KEYS = ("candidates", "docs", "items", "results", "data", "content")
SEARCH_FIELDS = "first_name,last_name,email,name,emails"
DEFAULT_ROWS = 200


def extract_records(payload: Any) -> List[dict]:
    """Return the first record list found in a search response."""
    if isinstance(payload, list):
        return [r for r in payload if isinstance(r, dict)]
    if not isinstance(payload, dict):
        return []
    for key in RECORD_LIST_KEYS:
        value = payload.get(key)
        if isinstance(value, list):
            return [r for r in value if isinstance(r, dict)]
    return []


def parse_total(payload: Any) -> Optional[int]:
    """First non-negative count among the known total fields."""
    if not isinstance(payload, dict):
        return None

    meta = payload.get("meta") if isinstance(payload.get("meta"), dict) else {}
    hits = payload.get("hits") if isinstance(payload.get("hits"), dict) else {}
    hits_total = hits.get("total") if isinstance(hits.get("total"), dict) else {}

    candidates = [
        payload.get("numFound"),
        payload.get("total"),
        payload.get("count"),
        payload.get("totalCount"),
        meta.get("total"),
        hits_total.get("value"),
    ]
    for value in candidates:
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0:
            return int(value)
    return None


class TalentPoolSource(VincereSource):
    """Talent pool candidates via candidate search."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        guard: TokenRefreshGuard,
        api_base: str,
        api_key: str,
        owner_key: str,
        pool_id: str,
        rows: int = DEFAULT_ROWS,
    ):
        super().__init__(client, guard, api_base, api_key, owner_key)
        self.pool_id = str(pool_id)
        self.rows = rows
        self._pool_key: Optional[str] = None

    def get_source_name(self) -> str:
        return "talent-pool"

    async def _fetch(self, pool_key: str, index: int) -> SlicePage:
        params = {
            pool_key: self.pool_id,
            "fl": SEARCH_FIELDS,
            "rows": self.rows,
            "start": index * self.rows,
        }
        response = await self._get(f"{self.api_base}/candidate/search", params)

        if not response.is_success:
            raise UpstreamFetchError(
                describe_response("Vincere talent pool search failed", response),
                status_code=response.status_code,
                body=body_excerpt(response),
            )

        payload = self._json(response)
        records = extract_records(payload)
        return SlicePage(
            records=records,
            last=len(records) < self.rows,
            total=parse_total(payload),
        )

    async def _probe(self, index: int) -> SlicePage:
        last_error: Optional[UpstreamFetchError] = None
        empty_page: Optional[SlicePage] = None

        for key in POOL_FILTER_KEYS:
            try:
                page = await self._fetch(key, index)
            except UpstreamFetchError as e:
                logger.debug(f"Pool filter {key} failed for pool {self.pool_id}: {e}")
                last_error = e
                continue

            if page.records:
                logger.info(f"Talent pool {self.pool_id} resolved with filter key {key}")
                self._pool_key = key
                return page
            if empty_page is None:
                empty_page = page

        if empty_page is not None:
            empty_page.last = True
            return empty_page
        raise last_error

    async def fetch_page(self, index: int) -> SlicePage:
        if self._pool_key is None:
            return await self._probe(index)
        return await self._fetch(self._pool_key, index)
