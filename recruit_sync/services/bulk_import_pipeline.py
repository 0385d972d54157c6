"""
Bulk import pipeline: Vincere source -> ActiveCampaign.

One run walks the job's record source slice by slice, normalizes and
filters each record, buffers the valid ones into the batch sender and
saves the job after every slice and every chunk so progress readers see
live totals. The run never raises: every failure ends the job in the
"error" state with the message in job.error.
"""

import asyncio
from typing import Callable, List, Optional, Set

from recruit_sync.common.error_handling import (
    ImportCancelledError,
    ImportPipelineError,
    MissingCredentialsError,
    WarningCollector,
)
from recruit_sync.common.logger import get_logger

from .activecampaign import ActiveCampaignClient
from .batch_sender import DEFAULT_BYTE_LIMIT, BatchSender, Destination
from .cancellation import CancellationToken
from .job_store import ImportJob, JobStore
from .record_filter import RecordOutcome, classify_record
from .record_normalizer import NormalizedRecord
from .slice_walker import DEFAULT_MAX_PAGES, SliceWalker
from .sources import RecordSource
from .token_refresh import TokenRefreshGuard

SourceFactory = Callable[[ImportJob], RecordSource]


class BulkImportPipeline:
    """Runs import jobs against injected collaborators."""

    def __init__(
        self,
        job_store: JobStore,
        guard: TokenRefreshGuard,
        source_factory: SourceFactory,
        ac_client: ActiveCampaignClient,
        max_pages: int = DEFAULT_MAX_PAGES,
        byte_limit: int = DEFAULT_BYTE_LIMIT,
    ):
        self.job_store = job_store
        self.guard = guard
        self.source_factory = source_factory
        self.ac_client = ac_client
        self.max_pages = max_pages
        self.byte_limit = byte_limit

    async def _save(self, job: ImportJob, warnings: WarningCollector) -> None:
        job.warnings = warnings.messages()
        await self.job_store.update(job)

    async def run(self, job: ImportJob, cancel_token: Optional[CancellationToken] = None) -> ImportJob:
        log = get_logger(__name__, job.id)
        cancel_token = cancel_token or CancellationToken()
        warnings = WarningCollector()

        try:
            log.info(
                f"Starting {job.source_kind} import of {job.source_id} for {job.owner_key} "
                f"(max={job.max_records}, chunk={job.chunk_size}, pause={job.pause_ms}ms)"
            )
            if not await self.guard.has_credentials(job.owner_key):
                raise MissingCredentialsError("Not connected to Vincere")

            source = self.source_factory(job)
            seen_emails: Set[str] = set()

            async def on_sent(count: int) -> None:
                job.add_sent(count)
                await self._save(job, warnings)

            sender = BatchSender(
                self.ac_client,
                Destination.from_request(job.destination_tag, job.destination_list_ids),
                chunk_size=job.chunk_size,
                pause_ms=job.pause_ms,
                byte_limit=self.byte_limit,
                cancel_token=cancel_token,
                warnings=warnings,
                on_sent=on_sent,
            )

            def on_total(total: Optional[int]) -> None:
                job.totals.pool_total = total
                job.touch()

            async def on_page(records: List[NormalizedRecord], is_last: bool) -> bool:
                job.totals.pages_fetched += 1
                job.touch()
                for record in records:
                    outcome = classify_record(record, seen_emails)
                    job.record_outcome(outcome)
                    if outcome == RecordOutcome.VALID:
                        await sender.add(record)
                    if job.totals.valid >= job.max_records:
                        break
                await self._save(job, warnings)
                return job.totals.valid >= job.max_records

            walker = SliceWalker(
                source,
                max_pages=self.max_pages,
                cancel_token=cancel_token,
                warnings=warnings,
                on_total=on_total,
            )
            result = await walker.walk(on_page)
            log.bind("walker").info(
                f"Walk finished after {result.pages_fetched} slice(s) ({result.stop_reason}); "
                f"flushing {sender.buffered} buffered record(s)"
            )

            await sender.flush()
            job.finish()
            log.info(
                f"Import done: seen={job.totals.seen} valid={job.totals.valid} "
                f"sent={job.totals.sent} duplicates={job.totals.duplicates} "
                f"skipped={job.totals.skipped_no_email}"
            )
        except ImportCancelledError as e:
            log.warning("Import cancelled")
            job.fail(str(e))
        except ImportPipelineError as e:
            log.error(f"Import failed: {e}")
            job.fail(str(e))
        except asyncio.CancelledError:
            job.fail("Import interrupted")
            await self._save_quietly(job, warnings, log)
            raise
        except Exception as e:
            log.exception(f"Unexpected error during import: {e}")
            job.fail(str(e) or type(e).__name__)

        await self._save_quietly(job, warnings, log)
        return job

    async def _save_quietly(self, job: ImportJob, warnings: WarningCollector, log) -> None:
        try:
            await self._save(job, warnings)
        except Exception as e:
            log.error(f"Failed to persist final job state: {e}")
