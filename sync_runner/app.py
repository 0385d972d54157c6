"""
FastAPI sync runner service.

Provides endpoints for starting Vincere -> ActiveCampaign bulk imports,
streaming their progress, checking status and cancelling them. The number
of simultaneous imports is capped by MAX_CONCURRENT_IMPORTS (default 3).
"""

import logging
from datetime import datetime, timezone

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from recruit_sync.common.logger import setup_logging

from . import __version__
from .config import settings, validate_config_on_startup
from .models import HealthResponse
from .routes import activecampaign_router, imports_router, owners_router
from .services import RunnerServices, get_services, set_services

setup_logging(level=settings.log_level, format=settings.log_format)
logger = logging.getLogger(__name__)

# Validate configuration at startup
validate_config_on_startup()

app = FastAPI(title="Recruit Sync Runner", version=__version__)

# Configure CORS using validated settings
if settings.cors_origins_list:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(imports_router)
app.include_router(owners_router)
app.include_router(activecampaign_router)


@app.get("/health", response_model=HealthResponse)
async def health_check(services: RunnerServices = Depends(get_services)) -> HealthResponse:
    """
    Health check endpoint for container orchestration.

    Returns service status and capacity information.
    """
    return HealthResponse(
        status="healthy",
        active_imports=await services.job_store.active_count(),
        max_concurrent_imports=services.settings.max_concurrent_imports,
        timestamp=datetime.now(timezone.utc),
    )


@app.on_event("shutdown")
async def shutdown_services():
    """Close the shared HTTP client and Redis connection."""
    services = get_services()
    for cancel_token in services.cancel_tokens.values():
        cancel_token.cancel()
    await services.close()
    set_services(None)
    logger.info("Sync runner services closed")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
