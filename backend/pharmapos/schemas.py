"""
Record schemas for documents read from and written to the store.

Every record crossing the store boundary goes through from_record() /
to_record(). from_record() rejects malformed records with
RecordValidationError instead of letting a half-shaped dict flow into the
billing workflow. Field names on the wire are camelCase; in Python they are
snake_case. Money is Decimal in memory and a 2-decimal float on the wire.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from pharmapos.time_utils import parse_date
from pharmapos.validation import to_text
from .services.pricing import round_money


SALES_TYPE_RETAIL = "retail"
SALES_TYPE_B2B = "b2b"
SALES_TYPES = (SALES_TYPE_RETAIL, SALES_TYPE_B2B)

PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_LEFT = "left"
PAYMENT_STATUSES = (PAYMENT_STATUS_PAID, PAYMENT_STATUS_LEFT)


class RecordValidationError(ValueError):
    """Raised when a stored record does not match its schema."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(f"{key}: {message}" if key else message)
        self.key = key


def _decimal(value: Any, field_name: str, key: str | None, default: Decimal | None = None) -> Decimal:
    if value is None or value == "":
        if default is not None:
            return default
        raise RecordValidationError(f"{field_name} is required", key)
    if isinstance(value, bool):
        raise RecordValidationError(f"{field_name} must be a number", key)
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise RecordValidationError(f"{field_name} must be a number", key)
    if not result.is_finite():
        raise RecordValidationError(f"{field_name} must be a number", key)
    return result


def _int(value: Any, field_name: str, key: str | None, default: int | None = None) -> int:
    if value is None or value == "":
        if default is not None:
            return default
        raise RecordValidationError(f"{field_name} is required", key)
    if isinstance(value, bool):
        raise RecordValidationError(f"{field_name} must be an integer", key)
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise RecordValidationError(f"{field_name} must be an integer", key)
    if not number.is_finite() or number != number.to_integral_value():
        raise RecordValidationError(f"{field_name} must be an integer", key)
    return int(number)


def _money_out(value: Decimal) -> float:
    return float(round_money(value))


def _number_out(value: Decimal) -> float | int:
    return int(value) if value == value.to_integral_value() else float(value)


def _require_mapping(record: Any, key: str | None) -> dict:
    if not isinstance(record, dict):
        raise RecordValidationError("record must be an object", key)
    return record


# =============================================================================
# CATALOG
# =============================================================================

@dataclass
class CatalogItem:
    id: str
    name: str
    quantity: int
    selling_price: Decimal
    expiry: Optional[date] = None
    batch: str = ""
    manufacturer: str = ""
    buying_price: Decimal = Decimal("0")
    category: str = ""
    supplier_id: str = ""
    supplier_name: str = ""
    description: str = ""
    rack: str = ""
    date_added: str = ""

    @classmethod
    def from_record(cls, key: str, record: Any) -> "CatalogItem":
        record = _require_mapping(record, key)
        name = to_text(record.get("name"))
        if not name:
            raise RecordValidationError("name is required", key)

        quantity = _int(record.get("quantity"), "quantity", key, default=0)
        if quantity < 0:
            raise RecordValidationError("quantity cannot be negative", key)

        selling_price = _decimal(record.get("sellingPrice"), "sellingPrice", key)
        if selling_price < 0:
            raise RecordValidationError("sellingPrice cannot be negative", key)

        return cls(
            id=str(key),
            name=name,
            quantity=quantity,
            selling_price=selling_price,
            expiry=parse_date(record.get("expiry")),
            batch=to_text(record.get("batch")),
            manufacturer=to_text(record.get("manufacturer")),
            buying_price=_decimal(record.get("buyingPrice"), "buyingPrice", key, default=Decimal("0")),
            category=to_text(record.get("category")),
            supplier_id=to_text(record.get("supplierId")),
            supplier_name=to_text(record.get("supplierName") or record.get("supplier")),
            description=to_text(record.get("description")),
            rack=to_text(record.get("rack")),
            date_added=to_text(record.get("dateAdded")),
        )

    def to_record(self) -> dict:
        return {
            "name": self.name,
            "batch": self.batch,
            "quantity": self.quantity,
            "expiry": self.expiry.isoformat() if self.expiry else "",
            "manufacturer": self.manufacturer,
            "buyingPrice": _number_out(self.buying_price),
            "sellingPrice": _number_out(self.selling_price),
            "category": self.category,
            "supplierId": self.supplier_id,
            "supplierName": self.supplier_name,
            "description": self.description,
            "rack": self.rack,
            "dateAdded": self.date_added,
        }

    def to_dict(self) -> dict:
        data = self.to_record()
        data["id"] = self.id
        return data


# =============================================================================
# COUNTERPARTIES AND CUSTOMER INFO
# =============================================================================

@dataclass
class Counterparty:
    id: str
    pharmacy_name: str
    owner_name: str = ""
    phone: str = ""
    address: str = ""
    email: str = ""
    registration_number: str = ""

    @classmethod
    def from_record(cls, key: str, record: Any) -> "Counterparty":
        record = _require_mapping(record, key)
        pharmacy_name = to_text(record.get("pharmacyName"))
        if not pharmacy_name:
            raise RecordValidationError("pharmacyName is required", key)
        return cls(
            id=str(key),
            pharmacy_name=pharmacy_name,
            owner_name=to_text(record.get("ownerName")),
            phone=to_text(record.get("phone")),
            address=to_text(record.get("address")),
            email=to_text(record.get("email")),
            registration_number=to_text(record.get("registrationNumber")),
        )

    def to_record(self) -> dict:
        return {
            "pharmacyName": self.pharmacy_name,
            "ownerName": self.owner_name,
            "phone": self.phone,
            "address": self.address,
            "email": self.email,
            "registrationNumber": self.registration_number,
        }

    def to_dict(self) -> dict:
        data = self.to_record()
        data["id"] = self.id
        return data


@dataclass
class RetailCustomer:
    name: str
    phone: str = "N/A"
    type: str = SALES_TYPE_RETAIL

    @property
    def display_name(self) -> str:
        return self.name

    def to_record(self) -> dict:
        return {"type": self.type, "name": self.name, "phone": self.phone}


@dataclass
class B2BCustomer:
    pharmacy_name: str
    owner_name: str = ""
    phone: str = ""
    address: str = ""
    email: str = ""
    registration_number: str = ""
    type: str = SALES_TYPE_B2B

    @classmethod
    def from_counterparty(cls, counterparty: Counterparty) -> "B2BCustomer":
        return cls(
            pharmacy_name=counterparty.pharmacy_name,
            owner_name=counterparty.owner_name,
            phone=counterparty.phone,
            address=counterparty.address,
            email=counterparty.email,
            registration_number=counterparty.registration_number,
        )

    @property
    def display_name(self) -> str:
        return self.pharmacy_name

    def to_record(self) -> dict:
        return {
            "type": self.type,
            "pharmacyName": self.pharmacy_name,
            "ownerName": self.owner_name,
            "phone": self.phone,
            "address": self.address,
            "email": self.email,
            "registrationNumber": self.registration_number,
        }


CustomerInfo = Union[RetailCustomer, B2BCustomer]


def customer_from_record(record: Any, key: str | None = None) -> CustomerInfo:
    record = _require_mapping(record, key)
    kind = to_text(record.get("type")).lower()
    if not kind:
        kind = SALES_TYPE_B2B if record.get("pharmacyName") else SALES_TYPE_RETAIL

    if kind == SALES_TYPE_RETAIL:
        return RetailCustomer(
            name=to_text(record.get("name")),
            phone=to_text(record.get("phone")) or "N/A",
        )
    if kind == SALES_TYPE_B2B:
        return B2BCustomer(
            pharmacy_name=to_text(record.get("pharmacyName")),
            owner_name=to_text(record.get("ownerName")),
            phone=to_text(record.get("phone")),
            address=to_text(record.get("address")),
            email=to_text(record.get("email")),
            registration_number=to_text(record.get("registrationNumber")),
        )
    raise RecordValidationError(f"unknown customerInfo type {kind!r}", key)


# =============================================================================
# SALES
# =============================================================================

@dataclass
class SaleItem:
    medicine_id: str
    name: str
    qty: int
    unit_price: Decimal
    total_price: Decimal

    @classmethod
    def from_record(cls, record: Any, key: str | None = None) -> "SaleItem":
        record = _require_mapping(record, key)
        return cls(
            medicine_id=to_text(record.get("medicineId")),
            name=to_text(record.get("name")),
            qty=_int(record.get("qty"), "items.qty", key),
            unit_price=_decimal(record.get("unitPrice"), "items.unitPrice", key),
            total_price=_decimal(record.get("totalPrice"), "items.totalPrice", key),
        )

    def to_record(self) -> dict:
        return {
            "medicineId": self.medicine_id,
            "name": self.name,
            "qty": self.qty,
            "unitPrice": _money_out(self.unit_price),
            "totalPrice": _money_out(self.total_price),
        }


@dataclass
class PaymentInfo:
    type: str
    status: str
    amount_paid: Decimal
    amount_left: Decimal

    @classmethod
    def from_record(cls, record: Any, key: str | None = None) -> "PaymentInfo":
        if not isinstance(record, dict):
            raise RecordValidationError("payment data is missing", key)
        status = to_text(record.get("status")).lower()
        if status not in PAYMENT_STATUSES:
            raise RecordValidationError(f"unknown payment status {status!r}", key)
        return cls(
            type=to_text(record.get("type")),
            status=status,
            amount_paid=_decimal(record.get("amountPaid"), "payment.amountPaid", key, default=Decimal("0")),
            amount_left=_decimal(record.get("amountLeft"), "payment.amountLeft", key, default=Decimal("0")),
        )

    def to_record(self) -> dict:
        return {
            "type": self.type,
            "status": self.status,
            "amountPaid": _money_out(self.amount_paid),
            "amountLeft": _money_out(self.amount_left),
        }


@dataclass
class PaymentNote:
    text: str
    timestamp: str
    paid_amount: Decimal
    updated_by: str

    @classmethod
    def from_record(cls, record: Any, key: str | None = None) -> "PaymentNote":
        record = _require_mapping(record, key)
        return cls(
            text=to_text(record.get("text")),
            timestamp=to_text(record.get("timestamp")),
            paid_amount=_decimal(record.get("paidAmount"), "paymentNotes.paidAmount", key, default=Decimal("0")),
            updated_by=to_text(record.get("updatedBy")),
        )

    def to_record(self) -> dict:
        return {
            "text": self.text,
            "timestamp": self.timestamp,
            "paidAmount": _money_out(self.paid_amount),
            "updatedBy": self.updated_by,
        }


_SALE_FIELDS = {
    "createdAt", "soldBy", "salesType", "discountPercent", "vatPercent",
    "discountAmount", "vatAmount", "subTotal", "grandTotal", "payment",
    "customerInfo", "items", "paymentNotes",
}


@dataclass
class Sale:
    """
    Immutable sale snapshot. Only payment and payment_notes change after
    creation, and only through payment reconciliation.
    """
    created_at: str
    sold_by: str
    sales_type: str
    discount_percent: Decimal
    vat_percent: Decimal
    discount_amount: Decimal
    vat_amount: Decimal
    sub_total: Decimal
    grand_total: Decimal
    payment: PaymentInfo
    customer_info: CustomerInfo
    items: list[SaleItem]
    payment_notes: list[PaymentNote] = field(default_factory=list)
    id: Optional[str] = None
    # Fields written by other tools; carried through full-object overwrites
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_record(cls, key: str, record: Any) -> "Sale":
        record = _require_mapping(record, key)
        sales_type = to_text(record.get("salesType")).lower()
        if sales_type not in SALES_TYPES:
            raise RecordValidationError(f"unknown salesType {sales_type!r}", key)

        items = record.get("items") or []
        if isinstance(items, dict):
            items = [items[k] for k in sorted(items, key=lambda k: int(k) if str(k).isdigit() else k)]
        notes = record.get("paymentNotes") or []
        if isinstance(notes, dict):
            notes = list(notes.values())

        return cls(
            id=str(key) if key is not None else None,
            created_at=to_text(record.get("createdAt")),
            sold_by=to_text(record.get("soldBy")) or "unknown",
            sales_type=sales_type,
            discount_percent=_decimal(record.get("discountPercent"), "discountPercent", key, default=Decimal("0")),
            vat_percent=_decimal(record.get("vatPercent"), "vatPercent", key, default=Decimal("0")),
            discount_amount=_decimal(record.get("discountAmount"), "discountAmount", key, default=Decimal("0")),
            vat_amount=_decimal(record.get("vatAmount"), "vatAmount", key, default=Decimal("0")),
            sub_total=_decimal(record.get("subTotal"), "subTotal", key, default=Decimal("0")),
            grand_total=_decimal(record.get("grandTotal"), "grandTotal", key),
            payment=PaymentInfo.from_record(record.get("payment"), key),
            customer_info=customer_from_record(record.get("customerInfo") or {"type": sales_type}, key),
            items=[SaleItem.from_record(item, key) for item in items],
            payment_notes=[PaymentNote.from_record(note, key) for note in notes],
            extra={k: v for k, v in record.items() if k not in _SALE_FIELDS},
        )

    def to_record(self) -> dict:
        data = dict(self.extra)
        data.update({
            "createdAt": self.created_at,
            "soldBy": self.sold_by,
            "salesType": self.sales_type,
            "discountPercent": _number_out(self.discount_percent),
            "vatPercent": _number_out(self.vat_percent),
            "discountAmount": _money_out(self.discount_amount),
            "vatAmount": _money_out(self.vat_amount),
            "subTotal": _money_out(self.sub_total),
            "grandTotal": _money_out(self.grand_total),
            "payment": self.payment.to_record(),
            "customerInfo": self.customer_info.to_record(),
            "items": [item.to_record() for item in self.items],
        })
        if self.payment_notes:
            data["paymentNotes"] = [note.to_record() for note in self.payment_notes]
        return data

    def to_dict(self) -> dict:
        data = self.to_record()
        data["id"] = self.id
        return data

    @property
    def customer_name(self) -> str:
        return self.customer_info.display_name
