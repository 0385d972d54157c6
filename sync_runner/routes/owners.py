"""
Owner credential routes.

The dashboard's OAuth callback hands the runner the Vincere tokens for a
user so import jobs started on that user's behalf can call Vincere and
refresh the id token when it expires.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..auth import verify_token
from ..models import OwnerTokensRequest, OwnerTokensResponse
from ..services import RunnerServices, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/owners", tags=["owners"], dependencies=[Depends(verify_token)])


async def _describe(services: RunnerServices, owner_key: str) -> OwnerTokensResponse:
    store = services.token_store
    return OwnerTokensResponse(
        owner_key=owner_key,
        has_id_token=bool(await store.get_id_token(owner_key)),
        has_refresh_token=bool(await store.get_refresh_token(owner_key)),
    )


@router.put("/{owner_key}/tokens", response_model=OwnerTokensResponse)
async def save_owner_tokens(
    owner_key: str,
    request: OwnerTokensRequest,
    services: RunnerServices = Depends(get_services),
) -> OwnerTokensResponse:
    """Store the id and/or refresh token for an owner."""
    owner_key = owner_key.strip()
    if not owner_key:
        raise HTTPException(status_code=400, detail="ownerKey is required")
    if not request.id_token and not request.refresh_token:
        raise HTTPException(status_code=400, detail="idToken or refreshToken is required")

    if request.id_token:
        await services.token_store.save_id_token(owner_key, request.id_token)
    if request.refresh_token:
        await services.token_store.save_refresh_token(owner_key, request.refresh_token)

    logger.info(f"Stored Vincere tokens for owner {owner_key}")
    return await _describe(services, owner_key)


@router.get("/{owner_key}/tokens", response_model=OwnerTokensResponse)
async def get_owner_tokens(
    owner_key: str,
    services: RunnerServices = Depends(get_services),
) -> OwnerTokensResponse:
    """Report which tokens are held for an owner (never the values)."""
    return await _describe(services, owner_key)


@router.delete("/{owner_key}/tokens", response_model=OwnerTokensResponse)
async def clear_owner_tokens(
    owner_key: str,
    services: RunnerServices = Depends(get_services),
) -> OwnerTokensResponse:
    """Disconnect an owner from Vincere."""
    await services.token_store.clear(owner_key)
    logger.info(f"Cleared Vincere tokens for owner {owner_key}")
    return await _describe(services, owner_key)
