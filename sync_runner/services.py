"""
Service wiring for the sync runner.

Builds the shared HTTP client, stores, token refresh guard, ActiveCampaign
client and pipeline from settings. The container is created lazily on first
use; tests replace it with set_services().
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx
from redis.asyncio import Redis

from recruit_sync.services.activecampaign import ActiveCampaignClient
from recruit_sync.services.bulk_import_pipeline import BulkImportPipeline
from recruit_sync.services.cancellation import CancellationToken
from recruit_sync.services.job_store import ImportJob, InMemoryJobStore, JobStore, RedisJobStore
from recruit_sync.services.sources import DistributionListSource, RecordSource, TalentPoolSource
from recruit_sync.services.token_refresh import TokenRefreshGuard, VincereTokenRefresher
from recruit_sync.services.token_store import InMemoryTokenStore, RedisTokenStore, TokenStore

from .config import RunnerSettings, settings as default_settings

logger = logging.getLogger(__name__)


@dataclass
class RunnerServices:
    """Everything a request handler needs, built once per process."""

    settings: RunnerSettings
    http_client: httpx.AsyncClient
    token_store: TokenStore
    job_store: JobStore
    guard: TokenRefreshGuard
    ac_client: ActiveCampaignClient
    pipeline: BulkImportPipeline
    redis: Optional[Redis] = None
    cancel_tokens: Dict[str, CancellationToken] = field(default_factory=dict)

    async def close(self) -> None:
        await self.http_client.aclose()
        if self.redis is not None:
            await self.redis.close()


def make_source_factory(settings: RunnerSettings, client: httpx.AsyncClient, guard: TokenRefreshGuard):
    """Return a callable building the record source for a job."""

    def build(job: ImportJob) -> RecordSource:
        if job.source_kind == "talent-pool":
            return TalentPoolSource(
                client,
                guard,
                settings.vincere_tenant_api_base,
                settings.vincere_api_key,
                job.owner_key,
                pool_id=job.source_id,
                rows=settings.talent_pool_rows,
            )
        return DistributionListSource(
            client,
            guard,
            settings.vincere_tenant_api_base,
            settings.vincere_api_key,
            job.owner_key,
            list_id=job.source_id,
            user_id=job.source_user_id or job.owner_key,
        )

    return build


def build_services(
    settings: RunnerSettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    redis: Optional[Redis] = None,
) -> RunnerServices:
    """
    Wire the runner's collaborators.

    Args:
        settings: Validated runner settings
        transport: Optional httpx transport (tests pass a MockTransport)
        redis: Optional Redis client; created from settings.redis_url when omitted
    """
    http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds, transport=transport)

    if redis is None and settings.redis_url:
        redis = Redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)

    if redis is not None:
        token_store: TokenStore = RedisTokenStore(redis, ttl_days=settings.refresh_token_ttl_days)
        job_store: JobStore = RedisJobStore(redis)
        logger.info("Using Redis-backed token and job stores")
    else:
        token_store = InMemoryTokenStore()
        job_store = InMemoryJobStore()
        logger.info("Using in-process token and job stores")

    refresher = VincereTokenRefresher(
        http_client,
        token_store,
        id_base=settings.vincere_id_base,
        client_id=settings.vincere_client_id,
    )
    guard = TokenRefreshGuard(token_store, refresher)
    ac_client = ActiveCampaignClient(http_client, settings.ac_base_url, settings.ac_api_token)

    pipeline = BulkImportPipeline(
        job_store,
        guard,
        make_source_factory(settings, http_client, guard),
        ac_client,
        max_pages=settings.max_slices,
        byte_limit=settings.payload_byte_limit,
    )

    return RunnerServices(
        settings=settings,
        http_client=http_client,
        token_store=token_store,
        job_store=job_store,
        guard=guard,
        ac_client=ac_client,
        pipeline=pipeline,
        redis=redis,
    )


_services: Optional[RunnerServices] = None


def get_services() -> RunnerServices:
    """FastAPI dependency returning the process-wide services container."""
    global _services
    if _services is None:
        _services = build_services(default_settings)
    return _services


def set_services(services: Optional[RunnerServices]) -> None:
    """Replace the services container (None resets to lazy default)."""
    global _services
    _services = services
