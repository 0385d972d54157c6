"""
Import job state and the stores that hold it.

An ImportJob is created by the start endpoint, mutated only by the pipeline
run that owns it, and read by the progress endpoint. Status moves from
"running" to either "done" or "error" and never changes again.

Two stores are provided:
- InMemoryJobStore: process-local dict (single runner instance)
- RedisJobStore: JSON documents in Redis with a 24-hour TTL, so several
  runner instances can serve progress for each other's jobs
"""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from redis.asyncio import Redis

from .record_filter import RecordOutcome

logger = logging.getLogger(__name__)


class JobStatus:
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


TERMINAL_STATUSES = frozenset({JobStatus.DONE, JobStatus.ERROR})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Optional[str]) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return _utcnow()


@dataclass
class JobTotals:
    """Running counters; valid == seen - skipped_no_email - duplicates."""

    pool_total: Optional[int] = None
    seen: int = 0
    valid: int = 0
    sent: int = 0
    skipped_no_email: int = 0
    duplicates: int = 0
    pages_fetched: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "poolTotal": self.pool_total,
            "seen": self.seen,
            "valid": self.valid,
            "sent": self.sent,
            "skippedNoEmail": self.skipped_no_email,
            "duplicates": self.duplicates,
            "pagesFetched": self.pages_fetched,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobTotals":
        return cls(
            pool_total=data.get("poolTotal"),
            seen=data.get("seen", 0),
            valid=data.get("valid", 0),
            sent=data.get("sent", 0),
            skipped_no_email=data.get("skippedNoEmail", 0),
            duplicates=data.get("duplicates", 0),
            pages_fetched=data.get("pagesFetched", 0),
        )


@dataclass
class ImportJob:
    """One bulk-import run."""

    id: str
    source_id: str
    owner_key: str
    source_kind: str = "distribution-list"
    source_user_id: Optional[str] = None
    destination_tag: Optional[str] = None
    destination_list_ids: List[int] = field(default_factory=list)
    max_records: int = 100_000
    chunk_size: int = 250
    pause_ms: int = 250
    status: str = JobStatus.RUNNING
    totals: JobTotals = field(default_factory=JobTotals)
    started_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def new(cls, source_id: str, owner_key: str, **kwargs) -> "ImportJob":
        return cls(id=uuid.uuid4().hex, source_id=source_id, owner_key=owner_key, **kwargs)

    @property
    def is_running(self) -> bool:
        return self.status == JobStatus.RUNNING

    def touch(self) -> None:
        self.updated_at = _utcnow()

    def record_outcome(self, outcome: RecordOutcome) -> None:
        """Count one examined record."""
        self.totals.seen += 1
        if outcome == RecordOutcome.VALID:
            self.totals.valid += 1
        elif outcome == RecordOutcome.DUPLICATE:
            self.totals.duplicates += 1
        else:
            self.totals.skipped_no_email += 1
        self.touch()

    def add_sent(self, count: int) -> None:
        self.totals.sent += count
        self.touch()

    def finish(self) -> bool:
        """running -> done. Returns False (and changes nothing) if already terminal."""
        if not self.is_running:
            return False
        self.status = JobStatus.DONE
        self.touch()
        return True

    def fail(self, message: str) -> bool:
        """running -> error. Returns False (and changes nothing) if already terminal."""
        if not self.is_running:
            return False
        self.status = JobStatus.ERROR
        self.error = message or "Unknown error"
        self.touch()
        return True

    def to_snapshot(self) -> Dict[str, Any]:
        """Public JSON shape streamed to progress clients."""
        snapshot: Dict[str, Any] = {
            "id": self.id,
            "status": self.status,
            "sourceId": self.source_id,
            "sourceKind": self.source_kind,
            "ownerKey": self.owner_key,
            "destinationTag": self.destination_tag,
            "destinationListIds": list(self.destination_list_ids),
            "totals": self.totals.to_dict(),
            "startedAt": self.started_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "warnings": list(self.warnings),
        }
        if self.error:
            snapshot["error"] = self.error
        return snapshot

    def to_dict(self) -> Dict[str, Any]:
        """Full serialized form (snapshot plus run parameters)."""
        data = self.to_snapshot()
        data.update({
            "sourceUserId": self.source_user_id,
            "maxRecords": self.max_records,
            "chunkSize": self.chunk_size,
            "pauseMs": self.pause_ms,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImportJob":
        return cls(
            id=data["id"],
            source_id=data.get("sourceId", ""),
            owner_key=data.get("ownerKey", ""),
            source_kind=data.get("sourceKind", "distribution-list"),
            source_user_id=data.get("sourceUserId"),
            destination_tag=data.get("destinationTag"),
            destination_list_ids=list(data.get("destinationListIds") or []),
            max_records=data.get("maxRecords", 100_000),
            chunk_size=data.get("chunkSize", 250),
            pause_ms=data.get("pauseMs", 250),
            status=data.get("status", JobStatus.RUNNING),
            totals=JobTotals.from_dict(data.get("totals") or {}),
            started_at=_parse_datetime(data.get("startedAt")),
            updated_at=_parse_datetime(data.get("updatedAt")),
            error=data.get("error"),
            warnings=list(data.get("warnings") or []),
        )


class JobStore(ABC):
    """Registry of import jobs keyed by id."""

    @abstractmethod
    async def create(self, job: ImportJob) -> None:
        pass

    @abstractmethod
    async def get(self, job_id: str) -> Optional[ImportJob]:
        pass

    @abstractmethod
    async def update(self, job: ImportJob) -> None:
        pass

    @abstractmethod
    async def active_count(self) -> int:
        pass

    @abstractmethod
    async def cleanup_finished(self, max_age_seconds: int) -> int:
        """Drop terminal jobs older than max_age_seconds. Returns how many were removed."""
        pass


class InMemoryJobStore(JobStore):
    """Process-local job registry."""

    def __init__(self):
        self._jobs: Dict[str, ImportJob] = {}

    async def create(self, job: ImportJob) -> None:
        if job.id in self._jobs:
            raise ValueError(f"Job {job.id} already exists")
        self._jobs[job.id] = job

    async def get(self, job_id: str) -> Optional[ImportJob]:
        return self._jobs.get(job_id)

    async def update(self, job: ImportJob) -> None:
        self._jobs[job.id] = job

    async def active_count(self) -> int:
        return sum(1 for job in self._jobs.values() if job.is_running)

    async def cleanup_finished(self, max_age_seconds: int) -> int:
        now = _utcnow()
        to_remove = [
            job_id for job_id, job in self._jobs.items()
            if not job.is_running and (now - job.updated_at).total_seconds() > max_age_seconds
        ]
        for job_id in to_remove:
            del self._jobs[job_id]

        if to_remove:
            logger.info(f"Cleaned up {len(to_remove)} finished import jobs")
        return len(to_remove)


class RedisJobStore(JobStore):
    """Redis-backed job registry shared across runner instances."""

    JOB_PREFIX = "import:job:"
    ACTIVE_KEY = "import:jobs:active"
    JOB_TTL_SECONDS = 86400  # 24 hours

    def __init__(self, redis: Redis):
        self._redis = redis

    def _key(self, job_id: str) -> str:
        return f"{self.JOB_PREFIX}{job_id}"

    async def create(self, job: ImportJob) -> None:
        created = await self._redis.set(
            self._key(job.id), json.dumps(job.to_dict()), ex=self.JOB_TTL_SECONDS, nx=True
        )
        if not created:
            raise ValueError(f"Job {job.id} already exists")
        await self._redis.sadd(self.ACTIVE_KEY, job.id)

    async def get(self, job_id: str) -> Optional[ImportJob]:
        raw = await self._redis.get(self._key(job_id))
        if not raw:
            return None
        return ImportJob.from_dict(json.loads(raw))

    async def update(self, job: ImportJob) -> None:
        await self._redis.set(self._key(job.id), json.dumps(job.to_dict()), ex=self.JOB_TTL_SECONDS)
        if not job.is_running:
            await self._redis.srem(self.ACTIVE_KEY, job.id)

    async def active_count(self) -> int:
        return await self._redis.scard(self.ACTIVE_KEY)

    async def cleanup_finished(self, max_age_seconds: int) -> int:
        # Finished jobs expire through the key TTL
        return 0
