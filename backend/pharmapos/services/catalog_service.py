# Overview: Service-layer caches for sellable items and B2B counterparties.

"""
Catalog Cache and Counterparty Directory

WHY: A billing session works from one snapshot of the medicines and
pharmacyDetailsList collections, read once when the session starts. Both
snapshots are explicit objects handed to the Cart and the sale orchestrator,
with an explicit refresh(), instead of module-level state.

Malformed records are skipped (and logged) so one bad document cannot take
the whole billing screen down.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional

from pharmapos.schemas import CatalogItem, Counterparty, RecordValidationError
from pharmapos.time_utils import today as utc_today
from .document_store import DocumentStore


logger = logging.getLogger(__name__)

MEDICINES = "medicines"
PHARMACIES = "pharmacyDetailsList"

DEFAULT_EXPIRY_MIN_DAYS = 10
DEFAULT_SEARCH_LIMIT = 20


def days_until_expiry(item: CatalogItem, on: Optional[date] = None) -> Optional[int]:
    """Whole days from `on` (default today) until the item's expiry date."""
    if item.expiry is None:
        return None
    return (item.expiry - (on or utc_today())).days


def is_expiry_sellable(item: CatalogItem, on: Optional[date] = None, min_days: int = DEFAULT_EXPIRY_MIN_DAYS) -> bool:
    """
    Near-expiry policy: an item is sellable only with at least `min_days`
    whole days left. Items without a readable expiry date are not sellable.
    """
    remaining = days_until_expiry(item, on)
    return remaining is not None and remaining >= min_days


class CatalogCache:
    """In-memory snapshot of the medicines collection (id -> CatalogItem)."""

    def __init__(self, store: DocumentStore, expiry_min_days: int = DEFAULT_EXPIRY_MIN_DAYS):
        self.store = store
        self.expiry_min_days = expiry_min_days
        self._items: dict[str, CatalogItem] = {}
        self.loaded = False

    def load(self) -> "CatalogCache":
        records = self.store.get(MEDICINES) or {}
        items = {}
        for key, record in records.items():
            try:
                items[key] = CatalogItem.from_record(key, record)
            except RecordValidationError as exc:
                logger.warning("Skipping malformed medicine record: %s", exc)
        self._items = items
        self.loaded = True
        return self

    refresh = load

    def get(self, item_id: str) -> Optional[CatalogItem]:
        return self._items.get(str(item_id))

    def items(self) -> list[CatalogItem]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id) -> bool:
        return str(item_id) in self._items

    def search(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT, on: Optional[date] = None) -> list[CatalogItem]:
        """
        Suggestions for the medicine search box: case-insensitive name
        match, in stock, and far enough from expiry to be sold.
        """
        q = (query or "").strip().lower()
        if not q:
            return []
        matches = [
            item for item in self._items.values()
            if q in item.name.lower()
            and item.quantity > 0
            and is_expiry_sellable(item, on, self.expiry_min_days)
        ]
        return matches[:limit]

    def apply_quantities(self, quantities: dict[str, int]) -> None:
        """Write committed stock levels back into the local snapshot."""
        for item_id, qty in quantities.items():
            item = self._items.get(str(item_id))
            if item is not None:
                item.quantity = qty


class CounterpartyDirectory:
    """In-memory snapshot of registered B2B pharmacies."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self._entries: dict[str, Counterparty] = {}
        self.loaded = False

    def load(self) -> "CounterpartyDirectory":
        records = self.store.get(PHARMACIES) or {}
        entries = {}
        for key, record in records.items():
            try:
                entries[key] = Counterparty.from_record(key, record)
            except RecordValidationError as exc:
                logger.warning("Skipping malformed pharmacy record: %s", exc)
        self._entries = entries
        self.loaded = True
        return self

    refresh = load

    def entries(self) -> list[Counterparty]:
        return list(self._entries.values())

    def count(self) -> int:
        return len(self._entries)

    def search(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> list[Counterparty]:
        q = (query or "").strip().lower()
        if not q:
            return []
        matches = [
            entry for entry in self._entries.values()
            if q in entry.pharmacy_name.lower()
            or q in entry.owner_name.lower()
            or q in entry.address.lower()
        ]
        return matches[:limit]

    def resolve(self, pharmacy_name: str) -> Optional[Counterparty]:
        """
        Exact pharmacyName match. With duplicate names the first entry in key
        order wins.
        """
        name = (pharmacy_name or "").strip()
        if not name:
            return None
        return next((entry for entry in self._iter_sorted() if entry.pharmacy_name == name), None)

    def _iter_sorted(self) -> Iterable[Counterparty]:
        for key in sorted(self._entries):
            yield self._entries[key]


# =============================================================================
# CATALOG IMPORT / EXPORT
# =============================================================================

def export_medicines(store: DocumentStore) -> dict:
    return store.get(MEDICINES) or {}


def import_medicines(store: DocumentStore, data) -> int:
    """
    Replace the whole medicines collection with `data` ({key: record}).

    Every record is checked first; nothing is written if any is malformed.
    """
    if not isinstance(data, dict):
        raise RecordValidationError("Medicines import must be a JSON object keyed by medicine id")
    for key, record in data.items():
        CatalogItem.from_record(key, record)
    store.replace_collection(MEDICINES, data)
    logger.info("Imported %d medicine record(s)", len(data))
    return len(data)
