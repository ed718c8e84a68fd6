# Overview: Service-layer payment reconciliation against persisted sales.

"""
Payment Reconciliation Service

WHY: Sales recorded with payment status "left" are settled later, in one or
more instalments, independent of any billing session.

DESIGN PRINCIPLES:
- Re-fetch the sale immediately before writing; never trust the copy shown
  when the payment dialog was opened.
- The write overwrites the whole sale document, but only if its version is
  still the one just re-fetched (compare-and-swap). Conflicts re-run the
  whole re-fetch/validate/write step (run_with_retry).
- Amounts are compared with a 0.01 tolerance; a remainder inside the
  tolerance snaps to 0 and flips the status to "paid".
- Notes are appended only when the operator supplies one.

STATES:
    Closed -> Open(sale_id) -> Submitting -> Closed   (success)
    Open -> Closed                                    (cancel)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from pharmapos.schemas import (
    PAYMENT_STATUS_LEFT,
    PAYMENT_STATUS_PAID,
    PaymentInfo,
    PaymentNote,
    RecordValidationError,
    Sale,
)
from pharmapos.time_utils import to_utc_z, utcnow
from pharmapos.validation import ValidationError, parse_strict_decimal, to_text
from .concurrency import run_with_retry
from .document_store import DocumentStore, StaleDocumentError, StoreError
from .pricing import ZERO, format_money
from .sales_service import SALES, PersistenceError, list_sales, within_days


logger = logging.getLogger(__name__)

DEFAULT_EPSILON = Decimal("0.01")
DEFAULT_REFETCH_DELAY_SECONDS = 0.5

STATE_CLOSED = "Closed"
STATE_OPEN = "Open"
STATE_SUBMITTING = "Submitting"


class PaymentError(Exception):
    """Raised for payment operation errors."""
    pass


class PaymentValidationError(PaymentError, ValidationError):
    """The tendered amount is not a usable number."""
    pass


class OverpaymentError(PaymentError, ValidationError):
    """The payment would exceed the grand total or the remaining balance."""
    pass


class SaleNotFound(PaymentError):
    """The sale (or its payment data) is missing, even after one retry."""
    pass


@dataclass
class PaymentTicket:
    """What the payment dialog shows when a sale is opened for payment."""
    sale: Sale
    version: int

    @property
    def sale_id(self) -> str:
        return self.sale.id

    @property
    def max_amount(self) -> Decimal:
        return self.sale.payment.amount_left

    def to_dict(self) -> dict:
        return {
            "sale": self.sale.to_dict(),
            "maxAmount": format_money(self.max_amount),
        }


class PaymentReconciler:
    """Applies partial or full payments to persisted sales."""

    def __init__(
        self,
        store: DocumentStore,
        epsilon: Decimal = DEFAULT_EPSILON,
        refetch_delay: float = DEFAULT_REFETCH_DELAY_SECONDS,
        sleep=time.sleep,
    ):
        self.store = store
        self.epsilon = Decimal(epsilon)
        self.refetch_delay = refetch_delay
        self._sleep = sleep
        self.state = STATE_CLOSED
        self.ticket: Optional[PaymentTicket] = None

    # ------------------------------------------------------------------
    # Dialog lifecycle
    # ------------------------------------------------------------------

    def open_for_payment(self, sale_id: str) -> PaymentTicket:
        """
        Fetch a sale for payment. A missing sale is fetched once more after
        a short delay (store lag) before giving up with SaleNotFound.
        """
        record, version = self.store.get_versioned(f"{SALES}/{sale_id}")
        if record is None:
            self._sleep(self.refetch_delay)
            record, version = self.store.get_versioned(f"{SALES}/{sale_id}")

        sale = self._parse(sale_id, record)
        self.ticket = PaymentTicket(sale=sale, version=version)
        self.state = STATE_OPEN
        return self.ticket

    def cancel(self) -> None:
        self.ticket = None
        self.state = STATE_CLOSED

    # ------------------------------------------------------------------
    # Payment application
    # ------------------------------------------------------------------

    def apply_payment(self, sale_id: str, amount_tendered, note: str | None = None, updated_by: str = "unknown") -> Sale:
        """
        Apply a payment to a sale and write it back.

        Raises:
            PaymentValidationError: amount is not a positive number
            OverpaymentError: amount exceeds what is owed (+/- epsilon)
            SaleNotFound: sale disappeared before the write
            PersistenceError: the write failed (including exhausted retries)
        """
        amount = self._parse_amount(amount_tendered)
        note_text = to_text(note)

        self.state = STATE_SUBMITTING
        try:
            sale = run_with_retry(lambda: self._apply_once(sale_id, amount, note_text, updated_by))
        except (StaleDocumentError, StoreError) as exc:
            self.state = STATE_OPEN if self.ticket else STATE_CLOSED
            raise PersistenceError(exc, sale_id=sale_id, sale_recorded=True) from exc
        except PaymentError:
            self.state = STATE_OPEN if self.ticket else STATE_CLOSED
            raise

        logger.info(
            "Payment of %s applied to sale %s by %s; left %s (%s)",
            format_money(amount), sale_id, updated_by,
            format_money(sale.payment.amount_left), sale.payment.status,
        )
        self.cancel()
        return sale

    def _apply_once(self, sale_id: str, amount: Decimal, note_text: str, updated_by: str) -> Sale:
        record, version = self.store.get_versioned(f"{SALES}/{sale_id}")
        if record is None:
            raise SaleNotFound("Sale not found before update. Please try again.")
        fresh = self._parse(sale_id, record)

        new_paid = fresh.payment.amount_paid + amount
        new_left = fresh.payment.amount_left - amount
        if new_paid > fresh.grand_total + self.epsilon or new_left < -self.epsilon:
            raise OverpaymentError(
                "Invalid payment amount. Overpayment detected or amount exceeds remaining balance."
            )

        settled = new_left < self.epsilon
        fresh.payment = PaymentInfo(
            type=fresh.payment.type,
            status=PAYMENT_STATUS_PAID if settled else PAYMENT_STATUS_LEFT,
            amount_paid=new_paid,
            amount_left=ZERO if settled else new_left,
        )
        if note_text:
            fresh.payment_notes.append(PaymentNote(
                text=note_text,
                timestamp=to_utc_z(utcnow()),
                paid_amount=amount,
                updated_by=updated_by,
            ))

        self.store.set(f"{SALES}/{sale_id}", fresh.to_record(), expected_version=version)
        return fresh

    def _parse(self, sale_id: str, record) -> Sale:
        if record is None or not isinstance(record, dict) or not record.get("payment"):
            raise SaleNotFound("Sale not found or payment data is missing.")
        try:
            return Sale.from_record(sale_id, record)
        except RecordValidationError as exc:
            raise SaleNotFound(f"Sale not found or payment data is missing ({exc}).") from exc

    @staticmethod
    def _parse_amount(value) -> Decimal:
        try:
            amount = parse_strict_decimal(value, "amount")
        except ValidationError:
            raise PaymentValidationError("Please enter a valid amount to pay.")
        if amount <= 0:
            raise PaymentValidationError("Please enter a valid amount to pay.")
        return amount


# =============================================================================
# PENDING PAYMENTS
# =============================================================================

@dataclass
class PendingFilters:
    search: str = ""
    customer_type: str = ""
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None


def list_pending(store: DocumentStore, filters: Optional[PendingFilters] = None) -> list[Sale]:
    """Sales with an outstanding balance, newest first, optionally filtered."""
    sales = [s for s in list_sales(store) if s.payment.amount_left > 0]
    sales.sort(key=lambda s: s.created_at, reverse=True)
    if filters is None:
        return sales
    return apply_filters(sales, filters)


def apply_filters(sales: list[Sale], filters: PendingFilters) -> list[Sale]:
    result = list(sales)

    search = filters.search.strip().lower()
    if search:
        def _matches(sale: Sale) -> bool:
            info = sale.customer_info.to_record()
            haystack = [info.get("name"), info.get("pharmacyName"), info.get("phone"), sale.id]
            return any(search in str(value).lower() for value in haystack if value)
        result = [s for s in result if _matches(s)]

    customer_type = filters.customer_type.strip().lower()
    if customer_type:
        result = [s for s in result if s.customer_info.type == customer_type]

    if filters.min_amount is not None:
        result = [s for s in result if s.payment.amount_left >= filters.min_amount]
    if filters.max_amount is not None:
        result = [s for s in result if s.payment.amount_left <= filters.max_amount]

    return within_days(result, filters.date_from, filters.date_to)


def summarize(sales: list[Sale]) -> dict:
    unpaid_total = sum((s.payment.amount_left for s in sales), ZERO)
    customers = {s.customer_name for s in sales}
    return {
        "unpaidTotal": format_money(unpaid_total),
        "pendingCustomers": len(customers),
    }
