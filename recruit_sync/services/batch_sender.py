"""
Downstream batch sender for ActiveCampaign bulk imports.

Valid records are buffered and sent in chunks of `chunk_size`. A chunk
whose serialized body exceeds the byte ceiling is split in halves until
every part fits, so no record is dropped. Between chunk sends the sender
waits `pause_ms` to stay under the bulk-import rate limit (100 req/min).
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from recruit_sync.common.error_handling import WarningCollector

from .activecampaign import ActiveCampaignClient
from .cancellation import CancellationToken

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 250
DEFAULT_PAUSE_MS = 250
DEFAULT_BYTE_LIMIT = 350_000

OnSent = Callable[[int], Awaitable[None]]


@dataclass
class Destination:
    """Where imported contacts land in ActiveCampaign."""
    tags: List[str] = field(default_factory=list)
    list_ids: List[int] = field(default_factory=list)
    exclude_automations: bool = True

    @classmethod
    def from_request(
        cls,
        tag_name: Optional[str] = None,
        list_ids: Optional[Iterable[int]] = None,
        tag_names: Optional[Iterable[str]] = None,
        exclude_automations: bool = True,
    ) -> "Destination":
        tags = [t.strip() for t in [tag_name, *(tag_names or [])] if t and str(t).strip()]
        return cls(
            tags=tags,
            list_ids=[int(i) for i in (list_ids or [])],
            exclude_automations=exclude_automations,
        )

    def has_target(self) -> bool:
        return bool(self.tags or self.list_ids)


def to_contact(record: Mapping[str, Any], destination: Destination) -> Optional[Dict[str, Any]]:
    """Map a record to an ActiveCampaign contact; None when it has no email."""
    email = str(record.get("email") or "").strip()
    if not email:
        return None

    contact: Dict[str, Any] = {"email": email}
    for name in ("first_name", "last_name", "phone"):
        value = record.get(name)
        if value:
            contact[name] = value
    if destination.list_ids:
        contact["subscribe"] = [{"listid": list_id} for list_id in destination.list_ids]
    if destination.tags:
        contact["tags"] = list(destination.tags)
    return contact


def encode_payload(contacts: List[Dict[str, Any]], exclude_automations: bool) -> bytes:
    """Serialize a bulk_import body exactly as it is sent."""
    payload = {"contacts": contacts, "exclude_automations": bool(exclude_automations)}
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


class BatchSender:
    """Buffers valid records and forwards them in paced chunks."""

    def __init__(
        self,
        client: ActiveCampaignClient,
        destination: Destination,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        pause_ms: int = DEFAULT_PAUSE_MS,
        byte_limit: int = DEFAULT_BYTE_LIMIT,
        cancel_token: Optional[CancellationToken] = None,
        warnings: Optional[WarningCollector] = None,
        on_sent: Optional[OnSent] = None,
    ):
        self.client = client
        self.destination = destination
        self.chunk_size = max(1, chunk_size)
        self.pause_seconds = max(0, pause_ms) / 1000
        self.byte_limit = byte_limit
        self.cancel_token = cancel_token or CancellationToken()
        self.warnings = warnings if warnings is not None else WarningCollector()
        self.on_sent = on_sent
        self.sent = 0
        self.chunks_sent = 0
        self._buffer: List[Dict[str, Any]] = []

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def _split_to_fit(self, contacts: List[Dict[str, Any]]) -> List[Tuple[List[Dict[str, Any]], bytes]]:
        body = encode_payload(contacts, self.destination.exclude_automations)
        if len(body) <= self.byte_limit or len(contacts) == 1:
            return [(contacts, body)]
        mid = len(contacts) // 2
        return self._split_to_fit(contacts[:mid]) + self._split_to_fit(contacts[mid:])

    async def _send_chunk(self, records: List[Dict[str, Any]]) -> None:
        contacts = [c for c in (to_contact(r, self.destination) for r in records) if c]
        if not contacts:
            return

        parts = self._split_to_fit(contacts)
        if len(parts) > 1:
            message = (
                f"Chunk of {len(contacts)} contacts exceeded {self.byte_limit} bytes; "
                f"sent in {len(parts)} parts"
            )
            logger.warning(message)
            self.warnings.add("sender", message)

        for i, (part, body) in enumerate(parts):
            if i > 0:
                await self.cancel_token.sleep(self.pause_seconds)
            self.cancel_token.raise_if_cancelled()
            await self.client.bulk_import(body)
            logger.info(f"Sent {len(part)} contacts to ActiveCampaign ({len(body)} bytes)")
            # Accepted parts count even if a later part of the chunk fails
            self.sent += len(part)
            if self.on_sent:
                await self.on_sent(len(part))

        self.chunks_sent += 1

    async def add(self, record: Mapping[str, Any]) -> None:
        """Buffer a record, sending a full chunk (then pausing) once the buffer fills."""
        self._buffer.append(dict(record))
        if len(self._buffer) >= self.chunk_size:
            chunk, self._buffer = self._buffer, []
            await self._send_chunk(chunk)
            await self.cancel_token.sleep(self.pause_seconds)

    async def flush(self) -> int:
        """Send whatever remains buffered. Returns the total sent so far."""
        if self._buffer:
            chunk, self._buffer = self._buffer, []
            await self._send_chunk(chunk)
        return self.sent


async def send_batches(
    client: ActiveCampaignClient,
    records: Iterable[Mapping[str, Any]],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    pause_ms: int = DEFAULT_PAUSE_MS,
    destination_tag: Optional[str] = None,
    destination_list_ids: Optional[Iterable[int]] = None,
    byte_limit: int = DEFAULT_BYTE_LIMIT,
    destination: Optional[Destination] = None,
) -> BatchSender:
    """
    Send a complete set of records in chunks.

    Returns the sender so callers can read `sent`, `chunks_sent` and
    collected warnings.
    """
    if destination is None:
        destination = Destination.from_request(destination_tag, destination_list_ids)
    sender = BatchSender(
        client,
        destination,
        chunk_size=chunk_size,
        pause_ms=pause_ms,
        byte_limit=byte_limit,
    )
    for record in records:
        await sender.add(record)
    await sender.flush()
    return sender
