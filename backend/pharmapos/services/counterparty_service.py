# Overview: Service-layer management of registered B2B pharmacies (the counterparty directory).

"""
Counterparty Service

WHY: A B2B sale only accepts a pharmacy that is registered in
pharmacyDetailsList. Admins register, edit and remove those pharmacies here;
billing sessions read the same collection through CounterpartyDirectory.

FIELD RULES:
- pharmacyName, ownerName: letters and spaces, max 200
- registrationNumber: digits, max 15
- phone: digits, max 10
- email: name@domain.tld
- address: letters, digits, spaces, commas, periods, hyphens, max 200

Pharmacy names are unique. Sales resolve a counterparty by exact name, so a
second pharmacy with the same name would be unreachable.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from pharmapos.schemas import Counterparty, RecordValidationError
from pharmapos.time_utils import to_utc_z, utcnow
from pharmapos.validation import ValidationError, to_text
from .catalog_service import PHARMACIES
from .document_store import DocumentStore


logger = logging.getLogger(__name__)

_NAME = re.compile(r"[A-Za-z ]{1,200}")
_DIGITS = re.compile(r"[0-9]+")
_EMAIL = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
_ADDRESS = re.compile(r"[A-Za-z0-9 ,.\-]{1,200}")

# wire name -> (pattern, max length, message)
FIELD_RULES = {
    "pharmacyName": (_NAME, 200, "Pharmacy name must be alphabetic and up to 200 characters."),
    "registrationNumber": (_DIGITS, 15, "Registration number must be numeric and up to 15 digits."),
    "phone": (_DIGITS, 10, "Contact number must be numeric and up to 10 digits."),
    "email": (_EMAIL, 254, "Please enter a valid email address."),
    "address": (
        _ADDRESS, 200,
        "Address can contain letters, numbers, spaces, commas, periods, hyphens (max 200 chars).",
    ),
    "ownerName": (_NAME, 200, "Owner name must be alphabetic and up to 200 characters."),
}


class CounterpartyError(Exception):
    """Raised for counterparty directory errors."""
    pass


class CounterpartyValidationError(CounterpartyError, ValidationError):
    pass


class CounterpartyNotFound(CounterpartyError):
    pass


class DuplicateCounterparty(CounterpartyError):
    pass


def validate_fields(data, partial: bool = False) -> dict[str, str]:
    """
    Check and trim registration fields. Unknown keys are ignored.

    With partial=True only the fields present are checked (edits);
    otherwise every field is required.
    """
    if not isinstance(data, dict):
        raise CounterpartyValidationError("Pharmacy details must be a JSON object.")

    cleaned = {}
    for name in FIELD_RULES:
        if name in data:
            cleaned[name] = to_text(data[name])

    if not partial and (set(cleaned) != set(FIELD_RULES) or not all(cleaned.values())):
        raise CounterpartyValidationError("Please fill out all fields.")

    for name, value in cleaned.items():
        pattern, max_length, message = FIELD_RULES[name]
        if len(value) > max_length or not pattern.fullmatch(value):
            raise CounterpartyValidationError(message)
    return cleaned


def list_counterparties(store: DocumentStore, search: str = "") -> list[Counterparty]:
    """Registered pharmacies in key order; search matches any field."""
    entries = []
    for key, record in sorted((store.get(PHARMACIES) or {}).items()):
        try:
            entries.append(Counterparty.from_record(key, record))
        except RecordValidationError as exc:
            logger.warning("Skipping malformed pharmacy record: %s", exc)

    term = (search or "").strip().lower()
    if term:
        entries = [
            entry for entry in entries
            if any(term in value.lower() for value in entry.to_record().values())
        ]
    return entries


def get_counterparty(store: DocumentStore, counterparty_id: str) -> Optional[Counterparty]:
    record = store.get(f"{PHARMACIES}/{counterparty_id}")
    if record is None:
        return None
    return Counterparty.from_record(counterparty_id, record)


def _ensure_unique_name(store: DocumentStore, name: str, exclude_id: str | None = None) -> None:
    for entry in list_counterparties(store):
        if entry.pharmacy_name == name and entry.id != exclude_id:
            raise DuplicateCounterparty(f'A pharmacy named "{name}" is already registered.')


def register_counterparty(store: DocumentStore, data, registered_by: str | None = None) -> Counterparty:
    fields = validate_fields(data)
    _ensure_unique_name(store, fields["pharmacyName"])

    record = dict(fields)
    record["registeredBy"] = registered_by or "unknown"
    record["createdAt"] = to_utc_z(utcnow())
    key = store.push(PHARMACIES, record)
    logger.info("Registered pharmacy %s (%s)", fields["pharmacyName"], key)
    return Counterparty.from_record(key, record)


def update_counterparty(store: DocumentStore, counterparty_id: str, data) -> Counterparty:
    """Edit the given fields in place; other stored fields are kept."""
    if get_counterparty(store, counterparty_id) is None:
        raise CounterpartyNotFound(f"Pharmacy {counterparty_id} not found")

    fields = validate_fields(data, partial=True)
    if not fields:
        raise CounterpartyValidationError("No pharmacy fields to update.")
    if "pharmacyName" in fields:
        _ensure_unique_name(store, fields["pharmacyName"], exclude_id=counterparty_id)

    store.update({f"{PHARMACIES}/{counterparty_id}/{name}": value for name, value in fields.items()})
    logger.info("Updated pharmacy %s: %s", counterparty_id, ", ".join(sorted(fields)))
    return get_counterparty(store, counterparty_id)


def remove_counterparty(store: DocumentStore, counterparty_id: str) -> None:
    if store.get(f"{PHARMACIES}/{counterparty_id}") is None:
        raise CounterpartyNotFound(f"Pharmacy {counterparty_id} not found")
    store.delete(f"{PHARMACIES}/{counterparty_id}")
    logger.info("Removed pharmacy %s", counterparty_id)
