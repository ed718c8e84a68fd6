# Overview: Service-layer sale transaction orchestration; validates, persists and commits a sale.

"""
Sale Transaction Orchestrator

WHY: Turns the in-memory Cart plus the checkout form into an immutable Sale
record and decrements stock. This is the only multi-step workflow in billing.

STATES:
    Idle -> Validating -> Persisting -> Committing -> Idle     (success)
    Idle -> Validating -> Rejected -> Idle                     (validation failure)

WRITES (two, NOT atomic with each other):
1. sales/<key> (the Sale) together with saleCommits/<key> (pending intent)
2. medicines/<id>/quantity for every line, together with
   saleCommits/<key>/status = "applied"

If write 2 fails the sale stays recorded, stock is not decremented and the
intent stays "pending"; pending_commits() finds it and repair_commit()
applies the recorded deltas. New quantities in write 2 are computed from the
session's cached stock, so two sessions with stale caches can oversell the
same item. This is known and deliberately kept.

RE-ENTRANCY: while a submission is in flight, submit() returns None
immediately without queueing and without raising.

Both writes are derived from the Sale snapshot, never from the live cart.
Lines added to the cart while a submission is in flight are not sold, not
decremented and stay in the cart afterwards.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, fields, replace
from datetime import date, datetime, time as dt_time
from decimal import Decimal
from typing import Any, Optional

from pharmapos.schemas import (
    B2BCustomer,
    PAYMENT_STATUS_LEFT,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUSES,
    PaymentInfo,
    RecordValidationError,
    RetailCustomer,
    SALES_TYPE_B2B,
    SALES_TYPE_RETAIL,
    SALES_TYPES,
    Sale,
    SaleItem,
)
from pharmapos.time_utils import parse_iso_datetime, to_utc_z, utcnow
from pharmapos.validation import ValidationError, parse_lenient_decimal, parse_strict_decimal, to_text
from .cart_service import Cart, CartLine
from .catalog_service import CatalogCache, CounterpartyDirectory, MEDICINES
from .document_store import DocumentStore, StoreError
from .pricing import compute_amount_left, compute_totals, round_money


logger = logging.getLogger(__name__)

SALES = "sales"
SALE_COMMITS = "saleCommits"

COMMIT_PENDING = "pending"
COMMIT_APPLIED = "applied"
COMMIT_REPAIRED = "repaired"

STATE_IDLE = "Idle"
STATE_VALIDATING = "Validating"
STATE_REJECTED = "Rejected"
STATE_PERSISTING = "Persisting"
STATE_COMMITTING = "Committing"

_RETAIL_NAME = re.compile(r"[A-Za-z ]{1,200}")
_RETAIL_PHONE = re.compile(r"[0-9]{1,14}")


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class SaleValidationError(SaleError, ValidationError):
    """User-correctable checkout problem; nothing was written."""

    title = "Validation Error"

    def __init__(self, reason: str, details: dict | None = None):
        super().__init__(reason, details)
        self.reason = reason


class SaleStockError(SaleValidationError):
    """A cart line asks for more than the cached stock at submit time."""

    title = "Stock Error"


class PersistenceError(SaleError):
    """
    A store write failed. sale_recorded tells whether the sale document
    exists (write 1 succeeded) even though the workflow did not finish.
    """

    def __init__(self, cause: Exception, sale_id: str | None = None, sale_recorded: bool = False):
        super().__init__(
            f"Failed to complete sale: {cause}",
            details={"sale_id": sale_id, "sale_recorded": sale_recorded},
        )
        self.cause = cause
        self.sale_id = sale_id
        self.sale_recorded = sale_recorded


@dataclass
class SaleForm:
    """Transient checkout form state; reset to these defaults after a sale."""
    sales_type: str = ""
    customer_name: str = ""
    customer_phone: str = ""
    counterparty_name: str = ""
    discount_percent: Any = "0"
    vat_percent: Any = "0"
    payment_type: str = ""
    payment_status: str = ""
    amount_paid: Any = ""

    _ALIASES = {
        "salesType": "sales_type",
        "customerName": "customer_name",
        "customerPhone": "customer_phone",
        "counterpartyName": "counterparty_name",
        "discountPercent": "discount_percent",
        "vatPercent": "vat_percent",
        "paymentType": "payment_type",
        "paymentStatus": "payment_status",
        "amountPaid": "amount_paid",
    }

    def update(self, data: dict) -> "SaleForm":
        names = {f.name for f in fields(self)}
        for key, value in (data or {}).items():
            name = self._ALIASES.get(key, key)
            if name in names:
                setattr(self, name, "" if value is None else value)
        return self

    def reset(self) -> None:
        defaults = SaleForm()
        for f in fields(self):
            setattr(self, f.name, getattr(defaults, f.name))

    def to_dict(self) -> dict:
        reverse = {v: k for k, v in self._ALIASES.items()}
        return {reverse[f.name]: getattr(self, f.name) for f in fields(self)}


@dataclass
class _Checked:
    customer: Any
    totals: Any
    payment: PaymentInfo
    lines: list[CartLine]


class SaleOrchestrator:
    """One per billing session; owns the in-progress flag for that session."""

    def __init__(self, store: DocumentStore, catalog: CatalogCache, directory: CounterpartyDirectory):
        self.store = store
        self.catalog = catalog
        self.directory = directory
        self.state = STATE_IDLE
        self._submit_lock = threading.Lock()

    @property
    def in_progress(self) -> bool:
        return self._submit_lock.locked()

    def submit(self, cart: Cart, form: SaleForm, sold_by: str) -> Optional[Sale]:
        """
        Validate, persist and commit the cart as a sale.

        Returns the persisted Sale, or None if a submission is already in
        flight. On success the sold lines leave the cart and the form is reset.

        Raises:
            SaleValidationError / SaleStockError: nothing written
            PersistenceError: a store write failed (see sale_recorded)
        """
        if not self._submit_lock.acquire(blocking=False):
            logger.info("Sale already in progress; ignoring duplicate submission")
            return None

        try:
            self.state = STATE_VALIDATING
            try:
                checked = self.validate(cart, form)
            except SaleValidationError:
                self.state = STATE_REJECTED
                raise

            sale = self._build_sale(form, checked, sold_by)
            decrements = sold_quantities(sale)

            self.state = STATE_PERSISTING
            sale_id = self._persist(sale, decrements)
            sale.id = sale_id

            self.state = STATE_COMMITTING
            self._decrement_stock(sale_id, decrements)

            logger.info(
                "Sale %s committed by %s: %d line(s), grand total %s",
                sale_id, sold_by, len(sale.items), round_money(sale.grand_total),
            )

            cart.discard_sold(decrements)
            form.reset()
            return sale
        finally:
            self.state = STATE_IDLE
            self._submit_lock.release()

    # ------------------------------------------------------------------
    # Validation (first failure wins)
    # ------------------------------------------------------------------

    def validate(self, cart: Cart, form: SaleForm) -> _Checked:
        sales_type = to_text(form.sales_type).lower()
        if sales_type not in SALES_TYPES:
            raise SaleValidationError("Please select Retail or B2B first.")

        # Later steps read this snapshot, never the live cart
        lines = [replace(line) for line in cart.lines]
        if not lines:
            raise SaleValidationError("No medicines added to the bill!")

        if sales_type == SALES_TYPE_RETAIL:
            customer = self._check_retail_customer(form)
        else:
            customer = self._check_b2b_customer(form)

        payment_type = to_text(form.payment_type)
        if not payment_type:
            raise SaleValidationError("Please select a payment type.")

        status = to_text(form.payment_status).lower()
        if status not in PAYMENT_STATUSES:
            raise SaleValidationError("Please select a payment status.")

        totals = compute_totals(lines, form.discount_percent, form.vat_percent)
        grand_total = round_money(totals.grand_total)

        if status == PAYMENT_STATUS_LEFT:
            if not to_text(form.amount_paid):
                raise SaleValidationError("Please enter the amount paid.")
            try:
                paid = parse_strict_decimal(form.amount_paid, "amount paid")
            except ValidationError:
                paid = None
            if paid is None or paid < 0 or paid > grand_total:
                raise SaleValidationError(
                    "Please enter a valid amount paid (must be between 0 and Grand Total)."
                )
            payment = PaymentInfo(
                type=payment_type,
                status=PAYMENT_STATUS_LEFT,
                amount_paid=paid,
                amount_left=compute_amount_left(grand_total, paid),
            )
        else:
            payment = PaymentInfo(
                type=payment_type,
                status=PAYMENT_STATUS_PAID,
                amount_paid=totals.grand_total,
                amount_left=Decimal("0"),
            )

        for line in lines:
            available = self.catalog.get(line.item_id)
            stock = available.quantity if available is not None else 0
            if line.qty > stock:
                raise SaleStockError(
                    f"Not enough stock for {line.name}. Requested: {line.qty}, Available: {stock}.",
                    details={"item_id": line.item_id, "requested": line.qty, "available": stock},
                )

        return _Checked(customer=customer, totals=totals, payment=payment, lines=lines)

    def _check_retail_customer(self, form: SaleForm) -> RetailCustomer:
        name = to_text(form.customer_name)
        phone = to_text(form.customer_phone)
        if not name:
            raise SaleValidationError("Please enter retail customer name.")
        if not _RETAIL_NAME.fullmatch(name):
            raise SaleValidationError(
                "Customer name must be alphabets & spaces only (max 200 characters)."
            )
        if phone and not _RETAIL_PHONE.fullmatch(phone):
            raise SaleValidationError("Customer phone must be numbers only (max 14 digits).")
        return RetailCustomer(name=name, phone=phone or "N/A")

    def _check_b2b_customer(self, form: SaleForm) -> B2BCustomer:
        found = self.directory.resolve(to_text(form.counterparty_name))
        if found is None:
            raise SaleValidationError("Please select a valid B2B customer from the suggestions.")
        return B2BCustomer.from_counterparty(found)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _build_sale(self, form: SaleForm, checked: _Checked, sold_by: str) -> Sale:
        totals = checked.totals
        return Sale(
            created_at=to_utc_z(utcnow()),
            sold_by=sold_by or "unknown",
            sales_type=checked.customer.type,
            discount_percent=parse_lenient_decimal(form.discount_percent),
            vat_percent=parse_lenient_decimal(form.vat_percent),
            discount_amount=totals.discount_amount,
            vat_amount=totals.vat_amount,
            sub_total=totals.sub_total,
            grand_total=totals.grand_total,
            payment=checked.payment,
            customer_info=checked.customer,
            items=[
                SaleItem(
                    medicine_id=line.item_id,
                    name=line.name,
                    qty=line.qty,
                    unit_price=line.unit_price,
                    total_price=line.total,
                )
                for line in checked.lines
            ],
        )

    def _persist(self, sale: Sale, decrements: dict[str, int]) -> str:
        sale_id = self.store.new_key(SALES)
        intent = {
            "status": COMMIT_PENDING,
            "createdAt": sale.created_at,
            "soldBy": sale.sold_by,
            "decrements": dict(decrements),
        }
        try:
            self.store.update({
                f"{SALES}/{sale_id}": sale.to_record(),
                f"{SALE_COMMITS}/{sale_id}": intent,
            })
        except StoreError as exc:
            logger.error("Failed to record sale: %s", exc)
            raise PersistenceError(exc, sale_id=None, sale_recorded=False) from exc
        return sale_id

    def _decrement_stock(self, sale_id: str, decrements: dict[str, int]) -> None:
        new_quantities = {
            item_id: self.catalog.get(item_id).quantity - qty
            for item_id, qty in decrements.items()
        }
        updates: dict[str, Any] = {
            f"{MEDICINES}/{item_id}/quantity": qty for item_id, qty in new_quantities.items()
        }
        updates[f"{SALE_COMMITS}/{sale_id}/status"] = COMMIT_APPLIED
        updates[f"{SALE_COMMITS}/{sale_id}/appliedAt"] = to_utc_z(utcnow())
        try:
            self.store.update(updates)
        except StoreError as exc:
            logger.error("Sale %s recorded but stock was not decremented: %s", sale_id, exc)
            raise PersistenceError(exc, sale_id=sale_id, sale_recorded=True) from exc
        self.catalog.apply_quantities(new_quantities)


# =============================================================================
# SALE READS AND COMMIT REPAIR
# =============================================================================

class SaleNotFoundError(SaleError):
    pass


def sold_quantities(sale: Sale) -> dict[str, int]:
    """Units sold per medicine id, as recorded in the intent and applied to stock."""
    quantities: dict[str, int] = {}
    for item in sale.items:
        quantities[item.medicine_id] = quantities.get(item.medicine_id, 0) + item.qty
    return quantities


def get_sale(store: DocumentStore, sale_id: str) -> Optional[Sale]:
    record = store.get(f"{SALES}/{sale_id}")
    if record is None:
        return None
    return Sale.from_record(sale_id, record)


def list_sales(store: DocumentStore) -> list[Sale]:
    sales = []
    for key, record in (store.get(SALES) or {}).items():
        try:
            sales.append(Sale.from_record(key, record))
        except RecordValidationError as exc:
            logger.warning("Skipping malformed sale record: %s", exc)
    return sales


# =============================================================================
# SALES HISTORY
# =============================================================================

@dataclass
class SaleFilters:
    """Sales history filters; empty values mean "all"."""
    search: str = ""
    sold_by: str = ""
    sales_type: str = ""
    counterparty: str = ""
    min_total: Optional[Decimal] = None
    max_total: Optional[Decimal] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None


def sale_created_at(sale: Sale) -> Optional[datetime]:
    try:
        return parse_iso_datetime(sale.created_at)
    except ValueError:
        return None


def within_days(sales: list[Sale], date_from: Optional[date], date_to: Optional[date]) -> list[Sale]:
    """Keep sales created inside the inclusive day range; open ends allowed."""
    result = sales
    if date_from is not None:
        start = datetime.combine(date_from, dt_time.min)
        result = [s for s in result if (sale_created_at(s) or datetime.min) >= start]
    if date_to is not None:
        end = datetime.combine(date_to, dt_time.max)
        result = [s for s in result if (sale_created_at(s) or datetime.max) <= end]
    return result


def _matches_search(sale: Sale, term: str) -> bool:
    haystack = [sale.id or "", sale.customer_name, sale.sold_by]
    haystack.extend(item.name for item in sale.items)
    return any(term in value.lower() for value in haystack if value)


def search_sales(store: DocumentStore, filters: Optional[SaleFilters] = None) -> list[Sale]:
    """
    Sales history, newest first.

    search matches sale id, customer or pharmacy name, seller and item
    names. sold_by and sales_type are case-insensitive exact matches;
    counterparty is an exact pharmacy name (B2B sales only).
    """
    sales = sorted(list_sales(store), key=lambda s: s.created_at, reverse=True)
    if filters is None:
        return sales

    term = filters.search.strip().lower()
    if term:
        sales = [s for s in sales if _matches_search(s, term)]

    sold_by = filters.sold_by.strip().lower()
    if sold_by:
        sales = [s for s in sales if s.sold_by.lower() == sold_by]

    sales_type = filters.sales_type.strip().lower()
    if sales_type:
        sales = [s for s in sales if s.sales_type.lower() == sales_type]

    counterparty = filters.counterparty.strip()
    if counterparty:
        sales = [
            s for s in sales
            if s.customer_info.type == SALES_TYPE_B2B and s.customer_info.pharmacy_name == counterparty
        ]

    if filters.min_total is not None:
        sales = [s for s in sales if s.grand_total >= filters.min_total]
    if filters.max_total is not None:
        sales = [s for s in sales if s.grand_total <= filters.max_total]

    return within_days(sales, filters.date_from, filters.date_to)


def pending_commits(store: DocumentStore) -> dict[str, dict]:
    """Sales recorded whose stock decrement never landed."""
    commits = store.get(SALE_COMMITS) or {}
    return {
        key: intent for key, intent in commits.items()
        if isinstance(intent, dict) and intent.get("status") == COMMIT_PENDING
    }


def repair_commit(store: DocumentStore, sale_id: str) -> dict[str, int]:
    """
    Apply a pending intent's decrements against current stored stock
    (floored at 0) and mark it repaired. Returns the new quantities.
    """
    intent = store.get(f"{SALE_COMMITS}/{sale_id}")
    if not isinstance(intent, dict):
        raise SaleNotFoundError(f"No commit intent for sale {sale_id}")
    if intent.get("status") != COMMIT_PENDING:
        raise SaleError(f"Commit for sale {sale_id} is already {intent.get('status')}")

    new_quantities = {}
    for item_id, qty in (intent.get("decrements") or {}).items():
        current = store.get(f"{MEDICINES}/{item_id}/quantity") or 0
        new_quantities[item_id] = max(int(current) - int(qty), 0)

    updates: dict[str, Any] = {
        f"{MEDICINES}/{item_id}/quantity": qty for item_id, qty in new_quantities.items()
    }
    updates[f"{SALE_COMMITS}/{sale_id}/status"] = COMMIT_REPAIRED
    updates[f"{SALE_COMMITS}/{sale_id}/appliedAt"] = to_utc_z(utcnow())
    store.update(updates)
    logger.info("Repaired stock commit for sale %s", sale_id)
    return new_quantities


def repair_pending_commits(store: DocumentStore) -> dict[str, dict[str, int]]:
    return {sale_id: repair_commit(store, sale_id) for sale_id in pending_commits(store)}
