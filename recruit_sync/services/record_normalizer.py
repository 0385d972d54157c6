"""
Record normalization for loosely-typed ATS payloads.

Vincere returns contacts and candidates in several shapes depending on the
endpoint: snake_case or camelCase names, a free-text "name", emails nested
under "contact"/"person" or inside an "emails" array. Each canonical field
is resolved from an ordered list of accessors; the first non-empty string
wins.
"""

from typing import Any, Callable, Dict, List, Optional, TypedDict


class NormalizedRecord(TypedDict):
    """Canonical contact shape forwarded to ActiveCampaign."""

    first_name: str
    last_name: str
    email: str


Accessor = Callable[[Dict[str, Any]], Any]


def _field(name: str) -> Accessor:
    return lambda raw: raw.get(name)


def _nested(parent: str, name: str) -> Accessor:
    def get(raw: Dict[str, Any]) -> Any:
        inner = raw.get(parent)
        if isinstance(inner, dict):
            return inner.get(name)
        return None
    return get


def _first_email_entry(raw: Dict[str, Any]) -> Any:
    emails = raw.get("emails")
    if not isinstance(emails, list) or not emails:
        return None
    first = emails[0]
    if isinstance(first, dict):
        return first.get("email")
    return first


FIRST_NAME_ACCESSORS: List[Accessor] = [
    _field("first_name"),
    _field("firstName"),
    _field("firstname"),
]

LAST_NAME_ACCESSORS: List[Accessor] = [
    _field("last_name"),
    _field("lastName"),
    _field("lastname"),
]

EMAIL_ACCESSORS: List[Accessor] = [
    _field("email"),
    _field("primary_email"),
    _field("candidate_email"),
    _field("contact_email"),
    _field("emailAddress"),
    _nested("contact", "email"),
    _nested("person", "email"),
    _first_email_entry,
]

PHONE_ACCESSORS: List[Accessor] = [
    _field("phone"),
    _field("mobile"),
    _field("phone_number"),
    _field("phoneNumber"),
    _nested("contact", "phone"),
    _nested("person", "phone"),
]


def _as_text(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, (str, int, float)):
        return str(value).strip()
    return ""


def resolve_first(raw: Dict[str, Any], accessors: List[Accessor]) -> str:
    """Return the first non-empty trimmed string produced by the accessors."""
    for accessor in accessors:
        value = _as_text(accessor(raw))
        if value:
            return value
    return ""


def normalize(raw: Dict[str, Any]) -> NormalizedRecord:
    """
    Map one upstream record onto {first_name, last_name, email}.

    When either name part is missing and a free-text "name" is present, the
    name is split on whitespace: first token fills the first name, the rest
    fills the last name. Unresolved fields are empty strings.
    """
    first = resolve_first(raw, FIRST_NAME_ACCESSORS)
    last = resolve_first(raw, LAST_NAME_ACCESSORS)

    if not first or not last:
        full_name = raw.get("name")
        if isinstance(full_name, str) and full_name.strip():
            parts = full_name.split()
            first = first or parts[0]
            last = last or " ".join(parts[1:])

    return {
        "first_name": first,
        "last_name": last,
        "email": resolve_first(raw, EMAIL_ACCESSORS),
    }


def normalize_page(records: Optional[List[Any]]) -> List[NormalizedRecord]:
    """Normalize every dict in a page, skipping non-object entries."""
    return [normalize(r) for r in (records or []) if isinstance(r, dict)]


def normalize_candidate(raw: Dict[str, Any]) -> Dict[str, str]:
    """
    Normalize a candidate posted for direct import.

    Same as normalize() plus the phone number when one is present; pipeline
    records never carry a phone.
    """
    record: Dict[str, str] = dict(normalize(raw))
    phone = resolve_first(raw, PHONE_ACCESSORS)
    if phone:
        record["phone"] = phone
    return record
