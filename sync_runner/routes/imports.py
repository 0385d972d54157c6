"""
Bulk Import API Routes.

Provides endpoints for running Vincere -> ActiveCampaign imports:
- POST /api/imports/start - Create a job and launch the pipeline in the background
- GET /api/imports/{job_id}/progress - Stream job snapshots as Server-Sent Events
- GET /api/imports/{job_id} - Current job snapshot
- POST /api/imports/{job_id}/cancel - Request cancellation of a running job

The start call returns as soon as the job is registered; callers follow
the returned progressUrl to watch it.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from recruit_sync.services.cancellation import CancellationToken
from recruit_sync.services.job_store import ImportJob
from recruit_sync.services.progress import stream_job_progress

from ..auth import verify_token
from ..models import SOURCE_KINDS, CancelImportResponse, StartImportRequest, StartImportResponse
from ..services import RunnerServices, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/imports", tags=["imports"])

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _progress_url(job_id: str) -> str:
    return f"/api/imports/{job_id}/progress"


def _status_url(job_id: str) -> str:
    return f"/api/imports/{job_id}"


async def _run_import(services: RunnerServices, job: ImportJob, cancel_token: CancellationToken) -> None:
    """Background task body; the pipeline records every failure on the job."""
    try:
        await services.pipeline.run(job, cancel_token)
    finally:
        services.cancel_tokens.pop(job.id, None)


def _validation_detail(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}" for err in error.errors()
    )


async def _parse_start_request(http_request: Request) -> StartImportRequest:
    """Validate the start body, reporting every problem as a 400."""
    try:
        payload = await http_request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")

    try:
        return StartImportRequest.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=_validation_detail(e))


@router.post("/start", response_model=StartImportResponse, dependencies=[Depends(verify_token)])
async def start_import(
    http_request: Request,
    background_tasks: BackgroundTasks,
    services: RunnerServices = Depends(get_services),
) -> StartImportResponse:
    """
    Register an import job and start it.

    Returns:
        jobId plus the progress (SSE) and status URLs

    Raises:
        HTTPException: 400 on missing or invalid fields, 429 when at
            capacity, 500 when Vincere or ActiveCampaign are not configured
    """
    request = await _parse_start_request(http_request)
    settings = services.settings

    source_id = (request.source_id or "").strip()
    owner_key = (request.owner_key or "").strip()
    destination_tag = (request.destination_tag or "").strip() or None
    list_ids = list(request.destination_list_ids or [])

    if not source_id or not owner_key:
        raise HTTPException(status_code=400, detail="sourceId and ownerKey are required")
    if not destination_tag and not list_ids:
        raise HTTPException(status_code=400, detail="destinationTag or destinationListIds is required")
    if request.source_kind not in SOURCE_KINDS:
        raise HTTPException(
            status_code=400,
            detail=f"sourceKind must be one of: {', '.join(SOURCE_KINDS)}",
        )

    missing = settings.missing_vincere_settings() + settings.missing_activecampaign_settings()
    if missing:
        raise HTTPException(status_code=500, detail=f"Missing env vars: {', '.join(missing)}")

    await services.job_store.cleanup_finished(settings.job_retention_seconds)
    if await services.job_store.active_count() >= settings.max_concurrent_imports:
        logger.warning(f"Runner at capacity, rejecting import of {source_id}")
        raise HTTPException(status_code=429, detail="Runner busy")

    job = ImportJob.new(
        source_id,
        owner_key,
        source_kind=request.source_kind,
        source_user_id=(request.source_user_id or "").strip() or None,
        destination_tag=destination_tag,
        destination_list_ids=list_ids,
        max_records=request.max_records or settings.default_max_records,
        chunk_size=request.chunk_size or settings.default_chunk_size,
        pause_ms=request.pause_ms if request.pause_ms is not None else settings.default_pause_ms,
    )
    await services.job_store.create(job)

    cancel_token = CancellationToken()
    services.cancel_tokens[job.id] = cancel_token
    background_tasks.add_task(_run_import, services, job, cancel_token)

    logger.info(f"[{job.id[:8]}] Import job created for {job.source_kind} {source_id} (owner={owner_key})")
    return StartImportResponse(
        job_id=job.id,
        progress_url=_progress_url(job.id),
        status_url=_status_url(job.id),
    )


@router.get("/{job_id}/progress")
async def stream_progress(
    job_id: str,
    services: RunnerServices = Depends(get_services),
) -> StreamingResponse:
    """Stream job snapshots until the job leaves "running"."""
    return StreamingResponse(
        stream_job_progress(
            services.job_store,
            job_id,
            interval_seconds=services.settings.progress_interval_seconds,
        ),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/{job_id}")
async def get_import(
    job_id: str,
    services: RunnerServices = Depends(get_services),
) -> Dict[str, Any]:
    """Return the job's current snapshot."""
    job = await services.job_store.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Import job not found")
    return job.to_snapshot()


@router.post("/{job_id}/cancel", response_model=CancelImportResponse, dependencies=[Depends(verify_token)])
async def cancel_import(
    job_id: str,
    services: RunnerServices = Depends(get_services),
) -> CancelImportResponse:
    """
    Request cancellation of a running import.

    The pipeline stops at its next checkpoint and ends the job with
    status "error" and message "Import cancelled".
    """
    job = await services.job_store.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Import job not found")

    if not job.is_running:
        return CancelImportResponse(success=False, error=f"Import already {job.status}")

    cancel_token = services.cancel_tokens.get(job_id)
    if cancel_token is None:
        return CancelImportResponse(success=False, error="Import is not running on this runner")

    cancel_token.cancel()
    logger.info(f"[{job_id[:8]}] Cancellation requested")
    return CancelImportResponse(success=True, message="Cancellation requested")
