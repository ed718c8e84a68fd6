# Overview: Service-layer billing sessions; one cart, form and orchestrator per operator session.

"""
Billing Session Service

WHY: The cart is owned by exactly one active billing session. A session
loads its catalog and counterparty snapshots once at start, and keeps the
transient checkout form until the sale is submitted.

Sessions are held in-process (BillingSessionRegistry) and are only visible
to the user who opened them.
"""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from pharmapos.schemas import PAYMENT_STATUS_LEFT
from pharmapos.time_utils import utcnow
from pharmapos.validation import parse_lenient_decimal, to_text
from .cart_service import Cart
from .catalog_service import CatalogCache, CounterpartyDirectory, DEFAULT_EXPIRY_MIN_DAYS
from .document_store import DocumentStore
from .pricing import compute_amount_left, format_money, round_money
from .sales_service import SaleForm, SaleOrchestrator


@dataclass
class BillingSession:
    id: str
    owner_id: int
    sold_by: str
    catalog: CatalogCache
    directory: CounterpartyDirectory
    cart: Cart
    orchestrator: SaleOrchestrator
    form: SaleForm = field(default_factory=SaleForm)
    created_at: object = field(default_factory=utcnow)

    @classmethod
    def open(
        cls,
        store: DocumentStore,
        owner_id: int,
        sold_by: str,
        expiry_min_days: int = DEFAULT_EXPIRY_MIN_DAYS,
        today: Optional[date] = None,
    ) -> "BillingSession":
        catalog = CatalogCache(store, expiry_min_days=expiry_min_days).load()
        directory = CounterpartyDirectory(store).load()
        return cls(
            id=secrets.token_urlsafe(16),
            owner_id=owner_id,
            sold_by=sold_by,
            catalog=catalog,
            directory=directory,
            cart=Cart(catalog, today=today),
            orchestrator=SaleOrchestrator(store, catalog, directory),
        )

    def refresh(self) -> None:
        self.catalog.refresh()
        self.directory.refresh()

    def checkout(self):
        return self.orchestrator.submit(self.cart, self.form, self.sold_by)

    def preview(self) -> dict:
        """Live totals as the billing screen shows them (rounded for display)."""
        totals = self.cart.totals(self.form.discount_percent, self.form.vat_percent)
        if to_text(self.form.payment_status).lower() == PAYMENT_STATUS_LEFT:
            paid = parse_lenient_decimal(self.form.amount_paid)
            amount_left = compute_amount_left(round_money(totals.grand_total), paid)
        else:
            amount_left = compute_amount_left(totals.grand_total, totals.grand_total)
        data = totals.to_dict()
        data["amountLeft"] = format_money(amount_left)
        return data

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "soldBy": self.sold_by,
            "lines": self.cart.to_list(),
            "form": self.form.to_dict(),
            "totals": self.preview(),
            "state": self.orchestrator.state,
        }


class BillingSessionRegistry:
    """In-process map of open billing sessions keyed by session id."""

    def __init__(self):
        self._sessions: dict[str, BillingSession] = {}
        self._lock = threading.Lock()

    def add(self, session: BillingSession) -> BillingSession:
        with self._lock:
            self._sessions[session.id] = session
        return session

    def get(self, session_id: str, owner_id: int) -> Optional[BillingSession]:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None or session.owner_id != owner_id:
            return None
        return session

    def close(self, session_id: str, owner_id: int) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.owner_id != owner_id:
                return False
            del self._sessions[session_id]
            return True

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)
