"""
Progress reporting for import jobs as Server-Sent Events.

A snapshot is emitted immediately, then once per interval until the job
leaves "running". Unknown job ids produce a single not-found event. The
reporter only reads the job store; closing the stream does not affect the
running import.
"""

import asyncio
import json
from typing import Any, AsyncIterator, Dict

from .job_store import JobStore

DEFAULT_INTERVAL_SECONDS = 1.0


def format_sse(payload: Dict[str, Any]) -> str:
    """Encode one SSE data frame."""
    return f"data: {json.dumps(payload)}\n\n"


def not_found_event(job_id: str) -> Dict[str, Any]:
    return {"status": "not-found", "jobId": job_id}


async def stream_job_progress(
    job_store: JobStore,
    job_id: str,
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
) -> AsyncIterator[str]:
    job = await job_store.get(job_id)
    if job is None:
        yield format_sse(not_found_event(job_id))
        return

    yield format_sse(job.to_snapshot())

    while job.is_running:
        await asyncio.sleep(interval_seconds)
        job = await job_store.get(job_id)
        if job is None:
            yield format_sse(not_found_event(job_id))
            return
        yield format_sse(job.to_snapshot())
