"""
ActiveCampaign API client.

Covers the three calls the import workflow needs: bulk contact import,
tag listing (to pick a destination tag) and list creation (to create a
destination list). Bulk import bodies are passed in pre-serialized so the
caller can enforce the request size ceiling on the exact bytes sent.
"""

import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from recruit_sync.common.error_handling import DownstreamSendError, body_excerpt, describe_response

logger = logging.getLogger(__name__)

BULK_IMPORT_PATH = "/api/3/import/bulk_import"
TAGS_PATH = "/api/3/tags"
LISTS_PATH = "/api/3/lists"

TAG_PAGE_LIMIT = 100
TAG_MAX_PAGES = 200


def slugify(name: str) -> str:
    """Lowercase, hyphen-separated list string id."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class ActiveCampaignClient:
    """Thin async wrapper over the ActiveCampaign v3 API."""

    def __init__(self, client: httpx.AsyncClient, base_url: str, api_token: str):
        self.client = client
        self.base_url = (base_url or "").rstrip("/")
        self.api_token = api_token

    def _headers(self, content_type: Optional[str] = None) -> Dict[str, str]:
        headers = {"Api-Token": self.api_token, "Accept": "application/json"}
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    async def _request(self, method: str, path: str, action: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, f"{self.base_url}{path}", **kwargs)
        except httpx.TransportError as e:
            raise DownstreamSendError(f"ActiveCampaign {action} failed: {e}") from e

        if not response.is_success:
            raise DownstreamSendError(
                describe_response(f"ActiveCampaign {action} failed", response),
                status_code=response.status_code,
                body=body_excerpt(response),
            )
        return response

    async def bulk_import(self, body: bytes) -> Any:
        """POST a serialized bulk_import payload. Raises DownstreamSendError on non-2xx."""
        response = await self._request(
            "POST",
            BULK_IMPORT_PATH,
            "import",
            content=body,
            headers=self._headers("application/json"),
        )
        try:
            return response.json()
        except ValueError:
            return response.text

    async def list_tags(self, limit: int = TAG_PAGE_LIMIT, max_pages: int = TAG_MAX_PAGES) -> List[Dict[str, Any]]:
        """Fetch every tag, paging until an empty or short page."""
        tags: List[Dict[str, Any]] = []
        offset = 0
        for _ in range(max_pages):
            response = await self._request(
                "GET",
                TAGS_PATH,
                "tags",
                params={"limit": limit, "offset": offset},
                headers=self._headers(),
            )
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            page = payload.get("tags") if isinstance(payload, dict) else None
            if not isinstance(page, list) or not page:
                break
            tags.extend(page)
            if len(page) < limit:
                break
            offset += limit
        return tags

    async def create_list(self, name: str, sender_url: str, sender_reminder: str) -> Dict[str, Any]:
        """Create a list; returns the API response body."""
        body = {
            "list": {
                "name": name,
                "stringid": slugify(name),
                "sender_url": sender_url,
                "sender_reminder": sender_reminder,
            }
        }
        response = await self._request(
            "POST",
            LISTS_PATH,
            "list creation",
            json=body,
            headers=self._headers("application/json"),
        )
        try:
            data = response.json()
        except ValueError:
            data = {}
        logger.info(f"Created ActiveCampaign list {name!r}")
        return data if isinstance(data, dict) else {"raw": data}
