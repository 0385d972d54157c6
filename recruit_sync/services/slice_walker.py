"""
Slice walker: drives a RecordSource page by page.

Pages are fetched strictly in increasing index order. The walk ends when
the upstream marks a page as last, when the page ceiling is hit (guards
against an upstream that never sets "last"), or when the page handler
reports that the caller's record ceiling was reached.

Failure policy: a failure on the first page is fatal and propagates; a
failure on any later page stops the walk early and keeps what was already
processed.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from recruit_sync.common.error_handling import UpstreamFetchError, WarningCollector

from .cancellation import CancellationToken
from .record_normalizer import NormalizedRecord, normalize_page
from .sources import RecordSource

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 400

# Receives (records, is_last); returns True once the record ceiling is reached
PageHandler = Callable[[List[NormalizedRecord], bool], Awaitable[bool]]


class StopReason:
    LAST_PAGE = "last_page"
    MAX_PAGES = "max_pages"
    MAX_RECORDS = "max_records"
    FETCH_FAILED = "fetch_failed"


@dataclass
class WalkResult:
    """Outcome of one walk."""
    pages_fetched: int = 0
    pool_total: Optional[int] = None
    stop_reason: str = ""


class SliceWalker:
    """Walks a paginated source with a hard page ceiling."""

    def __init__(
        self,
        source: RecordSource,
        max_pages: int = DEFAULT_MAX_PAGES,
        cancel_token: Optional[CancellationToken] = None,
        warnings: Optional[WarningCollector] = None,
        on_total: Optional[Callable[[Optional[int]], None]] = None,
    ):
        self.source = source
        self.max_pages = max_pages
        self.cancel_token = cancel_token or CancellationToken()
        self.warnings = warnings if warnings is not None else WarningCollector()
        self.on_total = on_total

    async def walk(self, on_page: PageHandler) -> WalkResult:
        result = WalkResult()
        slice_index = 0

        while slice_index < self.max_pages:
            self.cancel_token.raise_if_cancelled()

            try:
                page = await self.source.fetch_page(slice_index)
            except UpstreamFetchError as e:
                if slice_index == 0:
                    raise
                logger.warning(f"Slice {slice_index} failed, keeping partial results: {e}")
                self.warnings.add("walker", f"Stopped at slice {slice_index}: {e}")
                result.stop_reason = StopReason.FETCH_FAILED
                break

            if slice_index == 0:
                result.pool_total = page.total
                if self.on_total:
                    self.on_total(page.total)

            slice_index += 1
            result.pages_fetched = slice_index

            records = normalize_page(page.records)
            logger.debug(
                f"Slice {slice_index - 1} of {self.source.get_source_name()}: "
                f"{len(records)} records, last={page.last}"
            )
            limit_reached = await on_page(records, page.last)

            if page.last:
                result.stop_reason = StopReason.LAST_PAGE
                break
            if limit_reached:
                result.stop_reason = StopReason.MAX_RECORDS
                break
        else:
            logger.warning(f"Page ceiling of {self.max_pages} reached without a last slice")
            self.warnings.add("walker", f"Page ceiling of {self.max_pages} reached")
            result.stop_reason = StopReason.MAX_PAGES

        return result
