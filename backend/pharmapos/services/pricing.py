# Overview: Pure pricing functions for the billing workflow.

"""
Pricing Engine

subTotal       = sum(qty * unitPrice)
discountAmount = subTotal * discount% / 100
vatAmount      = (subTotal - discountAmount) * vat% / 100
grandTotal     = subTotal - discountAmount + vatAmount

Nothing here rounds. Rounding to 2 decimals happens only when a value is
displayed or persisted (round_money / format_money).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable

from pharmapos.validation import parse_lenient_decimal


CENT = Decimal("0.01")
ZERO = Decimal("0")


@dataclass(frozen=True)
class Totals:
    sub_total: Decimal
    discount_amount: Decimal
    vat_amount: Decimal
    grand_total: Decimal

    def rounded(self) -> "Totals":
        return Totals(
            sub_total=round_money(self.sub_total),
            discount_amount=round_money(self.discount_amount),
            vat_amount=round_money(self.vat_amount),
            grand_total=round_money(self.grand_total),
        )

    def to_dict(self) -> dict:
        return {
            "subTotal": format_money(self.sub_total),
            "discountAmount": format_money(self.discount_amount),
            "vatAmount": format_money(self.vat_amount),
            "grandTotal": format_money(self.grand_total),
        }


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    return f"{round_money(value):.2f}"


def line_total(qty: int, unit_price: Decimal) -> Decimal:
    return Decimal(qty) * Decimal(unit_price)


def compute_subtotal(lines: Iterable[Any]) -> Decimal:
    return sum((line_total(line.qty, line.unit_price) for line in lines), ZERO)


def compute_totals(lines: Iterable[Any], discount_percent: Any = 0, vat_percent: Any = 0) -> Totals:
    """
    Compute sale totals from cart lines (anything with .qty and .unit_price).

    Percentages may be raw form values; unparsable ones count as 0.
    """
    discount = parse_lenient_decimal(discount_percent)
    vat = parse_lenient_decimal(vat_percent)

    sub_total = compute_subtotal(lines)
    discount_amount = sub_total * discount / 100
    vat_amount = (sub_total - discount_amount) * vat / 100
    grand_total = sub_total - discount_amount + vat_amount

    return Totals(
        sub_total=sub_total,
        discount_amount=discount_amount,
        vat_amount=vat_amount,
        grand_total=grand_total,
    )


def compute_amount_left(grand_total: Decimal, amount_paid: Decimal) -> Decimal:
    """Remaining balance, floored at zero."""
    left = Decimal(grand_total) - Decimal(amount_paid)
    return left if left > 0 else ZERO
