"""
ActiveCampaign API Routes.

Provides endpoints the dashboard uses around an import:
- POST /api/activecampaign/import - Send already-normalized candidates in paced chunks
- GET /api/activecampaign/tags - List every tag (for picking a destination tag)
- POST /api/activecampaign/lists - Create a destination list
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException

from recruit_sync.common.error_handling import DownstreamSendError
from recruit_sync.services.batch_sender import Destination, send_batches
from recruit_sync.services.record_filter import is_valid_email
from recruit_sync.services.record_normalizer import normalize_candidate

from ..auth import verify_token
from ..models import (
    ActiveCampaignImportRequest,
    ActiveCampaignImportResponse,
    CreateListRequest,
    CreateListResponse,
)
from ..services import RunnerServices, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/activecampaign", tags=["activecampaign"], dependencies=[Depends(verify_token)])


def _require_configured(services: RunnerServices) -> None:
    missing = services.settings.missing_activecampaign_settings()
    if missing:
        raise HTTPException(status_code=500, detail=f"Missing env vars: {', '.join(missing)}")


def _bad_gateway(e: DownstreamSendError) -> HTTPException:
    logger.error(f"ActiveCampaign call failed: {e}")
    return HTTPException(status_code=502, detail=str(e))


@router.post("/import", response_model=ActiveCampaignImportResponse)
async def import_candidates(
    request: ActiveCampaignImportRequest,
    services: RunnerServices = Depends(get_services),
) -> ActiveCampaignImportResponse:
    """
    Import a list of candidates straight into ActiveCampaign.

    Candidates go through the same normalizer as pipeline records (plus the
    phone number, which the pipeline does not carry); those
    without a usable email are dropped.

    Raises:
        HTTPException: 400 when no candidate has an email, 502 when
            ActiveCampaign rejects a chunk
    """
    _require_configured(services)

    records = [normalize_candidate(c) for c in request.candidates if isinstance(c, dict)]
    records = [r for r in records if is_valid_email(r["email"])]
    if not records:
        raise HTTPException(status_code=400, detail="No candidates with email")

    destination = Destination.from_request(
        request.tag_name,
        request.list_ids,
        tag_names=request.tag_names,
        exclude_automations=request.exclude_automations,
    )
    settings = services.settings
    try:
        sender = await send_batches(
            services.ac_client,
            records,
            chunk_size=settings.default_chunk_size,
            pause_ms=settings.default_pause_ms,
            byte_limit=settings.payload_byte_limit,
            destination=destination,
        )
    except DownstreamSendError as e:
        raise _bad_gateway(e)

    logger.info(f"Direct import sent {sender.sent} contacts in {sender.chunks_sent} chunk(s)")
    return ActiveCampaignImportResponse(
        sent=sender.sent,
        chunks=sender.chunks_sent,
        warnings=sender.warnings.messages(),
    )


@router.get("/tags")
async def list_tags(services: RunnerServices = Depends(get_services)) -> Dict[str, List[Dict[str, Any]]]:
    """Return every ActiveCampaign tag."""
    _require_configured(services)
    try:
        tags = await services.ac_client.list_tags()
    except DownstreamSendError as e:
        raise _bad_gateway(e)
    return {"tags": tags}


@router.post("/lists", response_model=CreateListResponse)
async def create_list(
    request: CreateListRequest,
    services: RunnerServices = Depends(get_services),
) -> CreateListResponse:
    """Create an ActiveCampaign list with a slugified string id."""
    _require_configured(services)
    name = request.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Missing list name")

    settings = services.settings
    try:
        data = await services.ac_client.create_list(
            name,
            sender_url=settings.ac_sender_url or settings.ac_base_url,
            sender_reminder=settings.ac_sender_reminder,
        )
    except DownstreamSendError as e:
        raise _bad_gateway(e)

    created = data.get("list") if isinstance(data.get("list"), dict) else {}
    list_id = created.get("id")
    try:
        list_id = int(list_id) if list_id is not None else None
    except (TypeError, ValueError):
        list_id = None
    return CreateListResponse(id=list_id, data=data)
