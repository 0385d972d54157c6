"""
Unit tests for the record normalizer.

Covers the accessor priority for each canonical field and the free-text
name fallback.
"""

import pytest

from recruit_sync.services.record_normalizer import (
    EMAIL_ACCESSORS,
    normalize,
    normalize_candidate,
    normalize_page,
    resolve_first,
)


class TestNormalizeNames:
    """Tests for first/last name resolution."""

    def test_snake_case_names(self):
        record = normalize({"first_name": "Ada", "last_name": "Lovelace", "email": "ada@x.com"})
        assert record == {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@x.com"}

    def test_camel_case_names(self):
        record = normalize({"firstName": "Ada", "lastName": "Lovelace"})
        assert record["first_name"] == "Ada"
        assert record["last_name"] == "Lovelace"

    def test_lowercase_names(self):
        record = normalize({"firstname": "Ada", "lastname": "Lovelace"})
        assert (record["first_name"], record["last_name"]) == ("Ada", "Lovelace")

    def test_snake_case_wins_over_camel_case(self):
        record = normalize({"first_name": "Ada", "firstName": "Augusta"})
        assert record["first_name"] == "Ada"

    def test_empty_value_falls_through_to_next_accessor(self):
        record = normalize({"first_name": "  ", "firstName": "Augusta"})
        assert record["first_name"] == "Augusta"

    def test_full_name_split_when_both_parts_missing(self):
        record = normalize({"name": "Grace Brewster Hopper"})
        assert record["first_name"] == "Grace"
        assert record["last_name"] == "Brewster Hopper"

    def test_full_name_only_fills_missing_part(self):
        record = normalize({"first_name": "Amazing", "name": "Grace Hopper"})
        assert record["first_name"] == "Amazing"
        assert record["last_name"] == "Hopper"

    def test_single_token_name(self):
        record = normalize({"name": "Cher"})
        assert record["first_name"] == "Cher"
        assert record["last_name"] == ""

    def test_names_are_trimmed(self):
        record = normalize({"first_name": "  Ada ", "last_name": "\tLovelace\n"})
        assert record["first_name"] == "Ada"
        assert record["last_name"] == "Lovelace"


class TestNormalizeEmail:
    """Tests for email resolution across the accessor table."""

    def test_top_level_email(self):
        assert normalize({"email": "a@x.com"})["email"] == "a@x.com"

    def test_alternate_top_level_keys(self):
        for key in ("primary_email", "candidate_email", "contact_email", "emailAddress"):
            assert normalize({key: "a@x.com"})["email"] == "a@x.com", key

    def test_nested_contact_email(self):
        assert normalize({"contact": {"email": "c@x.com"}})["email"] == "c@x.com"

    def test_nested_person_email(self):
        assert normalize({"person": {"email": "p@x.com"}})["email"] == "p@x.com"

    def test_emails_array_of_objects(self):
        assert normalize({"emails": [{"email": "e@x.com"}, {"email": "f@x.com"}]})["email"] == "e@x.com"

    def test_emails_array_of_strings(self):
        assert normalize({"emails": ["s@x.com"]})["email"] == "s@x.com"

    def test_priority_order(self):
        raw = {
            "email": "",
            "primary_email": "primary@x.com",
            "contact": {"email": "contact@x.com"},
        }
        assert normalize(raw)["email"] == "primary@x.com"

    def test_missing_email_is_empty_string(self):
        assert normalize({"first_name": "Ada"})["email"] == ""

    def test_non_string_nested_values_ignored(self):
        assert normalize({"contact": "not-a-dict", "emails": "nope"})["email"] == ""


class TestResolveFirst:
    """Tests for the accessor helper."""

    def test_numbers_are_stringified(self):
        assert resolve_first({"email": 12345}, EMAIL_ACCESSORS) == "12345"

    def test_booleans_are_ignored(self):
        assert resolve_first({"email": True, "primary_email": "a@x.com"}, EMAIL_ACCESSORS) == "a@x.com"

    def test_nothing_resolves(self):
        assert resolve_first({}, EMAIL_ACCESSORS) == ""


class TestNormalizePage:
    """Tests for page-level normalization."""

    def test_skips_non_dict_entries(self):
        page = normalize_page([{"email": "a@x.com"}, "junk", None, 42])
        assert len(page) == 1
        assert page[0]["email"] == "a@x.com"

    def test_none_page(self):
        assert normalize_page(None) == []


RAW_SHAPES = [
    {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@x.com"},
    {"firstName": " Ada ", "lastName": "Lovelace", "emailAddress": "ada@x.com"},
    {"name": "Grace Brewster Hopper", "emails": [{"email": "g@x.com"}]},
    {"name": "Cher", "contact": {"email": "cher@x.com"}},
    {"first_name": "Amazing", "name": "Grace Hopper", "person": {"email": "p@x.com"}},
    {"firstname": 42, "primary_email": 12345},
    {"emails": ["s@x.com"]},
    {},
]


class TestNormalizeIsIdempotent:

    @pytest.mark.parametrize("raw", RAW_SHAPES)
    def test_normalizing_twice_changes_nothing(self, raw):
        once = normalize(raw)
        assert normalize(once) == once


class TestNormalizeCandidate:
    """Tests for direct-import candidates, which may carry a phone."""

    def test_phone_is_kept(self):
        record = normalize_candidate({"email": "a@x.com", "first_name": "A", "phone": "+441234"})
        assert record == {"first_name": "A", "last_name": "", "email": "a@x.com", "phone": "+441234"}

    def test_phone_accessor_order(self):
        assert normalize_candidate({"mobile": "07700", "contact": {"phone": "999"}})["phone"] == "07700"
        assert normalize_candidate({"phone": " ", "phoneNumber": "555"})["phone"] == "555"

    def test_no_phone_key_when_missing(self):
        assert "phone" not in normalize_candidate({"email": "a@x.com"})

    def test_pipeline_records_never_carry_phone(self):
        assert "phone" not in normalize({"email": "a@x.com", "phone": "+441234"})
