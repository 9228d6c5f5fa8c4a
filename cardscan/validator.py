"""
Field rules for extracted contacts.

A structured extraction result becomes a Contact only if it names a person
and a location, carries at least one phone number, and none of its populated
fields is an "unknown" placeholder. Phone numbers are trimmed but never
reformatted; E.164 formatting is requested from the extraction service.
"""
from typing import Any, Dict, Union

from .schema import ABSENT, Contact, CURRENT_SCHEMA_VERSION, PHONE_FIELDS, Rejected


# Placeholders the extraction service emits instead of leaving a field empty.
# Compared trimmed and case-sensitive.
UNKNOWN_SENTINELS = frozenset({"N/A", "not provided", "Not specified"})


def _text(value: Any) -> str:
    """Coerce a JSON value to trimmed text. null becomes the empty string."""
    if value is None:
        return ""
    return str(value).strip()


def validate_contact(
    fields: Dict[str, Any],
    card_id: str,
    schema_version: int = CURRENT_SCHEMA_VERSION,
) -> Union[Contact, Rejected]:
    """Validate and normalize one extraction result for `card_id`."""
    phone_fields = PHONE_FIELDS[schema_version]
    name = _text(fields.get("name"))
    location = _text(fields.get("location"))
    phones = {f: _text(fields.get(f)) for f in phone_fields}

    if not name or not location:
        return Rejected(reason="name or location is blank", fields=fields)

    if not any(phones.values()):
        return Rejected(reason="no phone number", fields=fields)

    populated = [name, location] + [v for v in phones.values() if v]
    sentinel = next((v for v in populated if v in UNKNOWN_SENTINELS), None)
    if sentinel is not None:
        return Rejected(reason=f"placeholder value {sentinel!r}", fields=fields)

    return Contact(
        card_id=card_id,
        name=name,
        location=location,
        phones={f: (v if v else ABSENT) for f, v in phones.items()},
        schema_version=schema_version,
    )
