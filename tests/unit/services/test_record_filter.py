"""
Unit tests for email validation and duplicate detection.
"""

import pytest

from recruit_sync.services.record_filter import (
    RecordOutcome,
    classify_record,
    dedupe_key,
    is_valid_email,
)


def _record(email: str) -> dict:
    return {"first_name": "", "last_name": "", "email": email}


class TestIsValidEmail:
    """Tests for the email shape check."""

    @pytest.mark.parametrize("email", ["a@b.c", "first.last@example.co.uk", "x+tag@sub.domain.io"])
    def test_valid(self, email):
        assert is_valid_email(email) is True

    @pytest.mark.parametrize("email", ["", "plainaddress", "a.com", "a@b", "@.", "a b@c d"])
    def test_invalid(self, email):
        assert is_valid_email(email) is False

    def test_search_semantics_accept_surrounding_text(self):
        # The shape only has to appear somewhere in the value
        assert is_valid_email("Ada <ada@x.com>") is True


class TestClassifyRecord:
    """Tests for per-record classification."""

    def test_valid_record_is_remembered(self):
        seen = set()
        assert classify_record(_record("A@X.com"), seen) == RecordOutcome.VALID
        assert "a@x.com" in seen

    def test_duplicate_is_case_insensitive(self):
        seen = set()
        classify_record(_record("a@x.com"), seen)
        assert classify_record(_record("A@X.COM"), seen) == RecordOutcome.DUPLICATE

    def test_missing_email_is_skipped(self):
        seen = set()
        assert classify_record(_record(""), seen) == RecordOutcome.SKIPPED_NO_EMAIL
        assert seen == set()

    def test_invalid_email_is_skipped_not_remembered(self):
        seen = set()
        assert classify_record(_record("nobody@localhost"), seen) == RecordOutcome.SKIPPED_NO_EMAIL
        assert seen == set()

    def test_duplicate_does_not_change_seen(self):
        seen = {"a@x.com"}
        classify_record(_record("a@x.com"), seen)
        assert seen == {"a@x.com"}

    def test_outcome_values_match_totals_keys(self):
        assert RecordOutcome.SKIPPED_NO_EMAIL.value == "skippedNoEmail"
        assert RecordOutcome.VALID == "valid"

    def test_dedupe_key_lowercases(self):
        assert dedupe_key("MiXeD@Case.COM") == "mixed@case.com"
