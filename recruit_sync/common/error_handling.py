"""
Centralized error handling for the bulk import pipeline.

Fatal conditions are raised as ImportPipelineError subclasses and end the
job in the "error" state. Non-fatal incidents (a later slice failing, a
chunk that had to be split) are collected as warnings and surfaced in the
job snapshot instead.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

import httpx

# Excerpt length for upstream response bodies quoted in error messages
BODY_EXCERPT_CHARS = 300

# Cap on warnings kept per job
MAX_WARNINGS = 50


class ImportPipelineError(Exception):
    """Base class for errors that abort an import job."""


class UpstreamFetchError(ImportPipelineError):
    """The record source returned a non-2xx response or was unreachable."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DownstreamSendError(ImportPipelineError):
    """The bulk-import API rejected a chunk."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MissingCredentialsError(ImportPipelineError):
    """No access token is stored for the owner."""


class ImportCancelledError(ImportPipelineError):
    """The job was cancelled while running."""

    def __init__(self, message: str = "Import cancelled"):
        super().__init__(message)


def body_excerpt(response: httpx.Response) -> str:
    """Return a short, single-line excerpt of a response body."""
    try:
        text = response.text
    except Exception:
        return ""
    text = " ".join(text.split())
    if len(text) > BODY_EXCERPT_CHARS:
        return text[:BODY_EXCERPT_CHARS] + "..."
    return text


def describe_response(prefix: str, response: httpx.Response) -> str:
    """Build the "<prefix> (<status>) <body>" message used for Job.error."""
    excerpt = body_excerpt(response)
    message = f"{prefix} ({response.status_code})"
    if excerpt:
        message = f"{message} {excerpt}"
    return message


@dataclass
class PipelineWarning:
    """A non-fatal incident recorded during a run."""

    stage: str  # e.g., "walker", "sender"
    message: str
    timestamp: str = field(default_factory=lambda: datetime.utcnow().isoformat())

    def __str__(self) -> str:
        return f"[{self.stage}] {self.message}"


class WarningCollector:
    """Collects warnings for one job run, keeping at most MAX_WARNINGS."""

    def __init__(self, limit: int = MAX_WARNINGS):
        self.limit = limit
        self.warnings: List[PipelineWarning] = []
        self.dropped = 0

    def add(self, stage: str, message: str) -> None:
        if len(self.warnings) >= self.limit:
            self.dropped += 1
            return
        self.warnings.append(PipelineWarning(stage=stage, message=message))

    def messages(self) -> List[str]:
        out = [str(w) for w in self.warnings]
        if self.dropped:
            out.append(f"... {self.dropped} more warning(s) not shown")
        return out

    def __len__(self) -> int:
        return len(self.warnings) + self.dropped
