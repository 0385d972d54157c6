"""
Email validation and deduplication for normalized records.

Usage:
    from recruit_sync.services.record_filter import RecordOutcome, classify_record

    seen: set = set()
    outcome = classify_record({"first_name": "", "last_name": "", "email": "A@x.com"}, seen)
    # RecordOutcome.VALID, and "a@x.com" is now in seen

The seen-email set belongs to one job run and is shared across all of its
pages, so a contact appearing on slice 0 and again on slice 7 is only sent
once.
"""

import re
from enum import Enum
from typing import Mapping, Set

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")


class RecordOutcome(str, Enum):
    """Classification of a single record."""

    VALID = "valid"
    SKIPPED_NO_EMAIL = "skippedNoEmail"
    DUPLICATE = "duplicate"


def dedupe_key(email: str) -> str:
    """Key used for duplicate detection (lowercased email)."""
    return email.lower()


def is_valid_email(email: str) -> bool:
    """
    Basic text@text.text shape check.

    Examples:
        >>> is_valid_email("a@b.c")
        True
        >>> is_valid_email("a@b")
        False
        >>> is_valid_email("")
        False
    """
    if not email:
        return False
    return EMAIL_PATTERN.search(email) is not None


def classify_record(record: Mapping[str, str], seen_emails: Set[str]) -> RecordOutcome:
    """
    Classify a record and remember its email when it is accepted.

    Args:
        record: Normalized record
        seen_emails: Lowercased emails already accepted in this job run.
            Mutated: the email of a VALID record is added.
    """
    email = record.get("email") or ""
    if not is_valid_email(email):
        return RecordOutcome.SKIPPED_NO_EMAIL

    key = dedupe_key(email)
    if key in seen_emails:
        return RecordOutcome.DUPLICATE

    seen_emails.add(key)
    return RecordOutcome.VALID
