"""
Job-aware logging for the bulk import pipeline.

Pipeline code logs through an ImportLogger, a LoggerAdapter that attaches
the import job id and pipeline stage to every record as `job_id` / `stage`
attributes. The formatters installed by setup_logging() render them:

- "simple": `2024-05-01 12:00:00 [INFO] name: [job:0123abcd] [walker] message`
- "json":   one JSON object per line with `job_id` and `stage` as fields,
            so log shippers can filter a single import without parsing text

Usage:
    log = get_logger(__name__, job.id)
    log.info("Starting import")
    log.bind("sender").warning("Chunk split")
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Optional, Tuple

# Characters of the job id shown in text lines
JOB_PREFIX_CHARS = 8


class ImportLogger(logging.LoggerAdapter):
    """Adapter that tags records with the import job id and stage."""

    def __init__(self, logger: logging.Logger, job_id: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(logger, {"job_id": job_id, "stage": stage})

    @property
    def job_id(self) -> Optional[str]:
        return self.extra["job_id"]

    @property
    def stage(self) -> Optional[str]:
        return self.extra["stage"]

    def bind(self, stage: str) -> "ImportLogger":
        """Return a logger for the same job tagged with another stage."""
        return ImportLogger(self.logger, self.job_id, stage)

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def job_prefix(record: logging.LogRecord) -> str:
    """Render the `[job:<id>] [<stage>]` prefix for a record, if it has one."""
    parts = []
    job_id = getattr(record, "job_id", None)
    stage = getattr(record, "stage", None)
    if job_id:
        parts.append(f"[job:{job_id[:JOB_PREFIX_CHARS]}]")
    if stage:
        parts.append(f"[{stage}]")
    return " ".join(parts)


class TextFormatter(logging.Formatter):
    """Plain-text lines with the job prefix in front of the message."""

    def __init__(self):
        super().__init__("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    def formatMessage(self, record: logging.LogRecord) -> str:
        prefix = job_prefix(record)
        if prefix:
            record.message = f"{prefix} {record.message}"
        return super().formatMessage(record)


class JsonFormatter(logging.Formatter):
    """One JSON object per line; job_id and stage are emitted when set."""

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "job_id": getattr(record, "job_id", None),
            "stage": getattr(record, "stage", None),
            "message": record.getMessage(),
        }
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps({k: v for k, v in data.items() if v is not None}, ensure_ascii=False)


def setup_logging(level: str = "INFO", format: str = "simple") -> None:
    """
    Configure the root logger with a single stdout handler.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format: "simple" or "json"
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JsonFormatter() if format == "json" else TextFormatter())

    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)


def get_logger(name: str, job_id: Optional[str] = None, stage: Optional[str] = None) -> ImportLogger:
    """Get a logger tagged with an import job id and optional stage."""
    return ImportLogger(logging.getLogger(name), job_id, stage)
