"""
Pricing engine tests.

Verifies:
- Totals formula (discount on subtotal, VAT on discounted subtotal)
- Unparsable percentages count as 0
- Rounding happens only on display
- Amount left is floored at 0
"""

from dataclasses import dataclass
from decimal import Decimal

from pharmapos.services.pricing import (
    Totals,
    compute_amount_left,
    compute_subtotal,
    compute_totals,
    format_money,
    round_money,
)


@dataclass
class Line:
    qty: int
    unit_price: Decimal


LINES = [Line(2, Decimal("50")), Line(1, Decimal("100"))]


class TestComputeTotals:

    def test_discount_and_vat(self):
        totals = compute_totals(LINES, "10", "5")
        assert totals.sub_total == Decimal("200")
        assert totals.discount_amount == Decimal("20")
        assert totals.vat_amount == Decimal("9")
        assert totals.grand_total == Decimal("189")

    def test_deterministic(self):
        assert compute_totals(LINES, 10, 5) == compute_totals(LINES, 10, 5)

    def test_unparsable_percentages_default_to_zero(self):
        totals = compute_totals(LINES, "abc", "")
        assert totals.discount_amount == 0
        assert totals.vat_amount == 0
        assert totals.grand_total == Decimal("200")

    def test_leading_number_is_used(self):
        totals = compute_totals(LINES, "10%", None)
        assert totals.discount_amount == Decimal("20")

    def test_out_of_range_percentages_default_to_zero(self):
        totals = compute_totals([Line(2, Decimal("50"))], "1e999999", "9e12")
        assert totals.grand_total == Decimal("100")
        assert totals.to_dict()["grandTotal"] == "100.00"

    def test_huge_leading_number_defaults_to_zero(self):
        assert compute_totals(LINES, "1e30%", 0).discount_amount == 0

    def test_empty_cart(self):
        totals = compute_totals([], 10, 13)
        assert totals.grand_total == 0
        assert compute_subtotal([]) == 0

    def test_no_intermediate_rounding(self):
        totals = compute_totals([Line(1, Decimal("0.333"))], 0, 13)
        assert totals.vat_amount == Decimal("0.04329")
        assert totals.rounded().vat_amount == Decimal("0.04")

    def test_to_dict_is_display_formatted(self):
        totals = compute_totals([Line(3, Decimal("33.335"))], 0, 0)
        assert totals.to_dict()["subTotal"] == "100.01"
        assert isinstance(totals, Totals)


class TestMoneyHelpers:

    def test_round_half_up(self):
        assert round_money(Decimal("2.675")) == Decimal("2.68")
        assert round_money(Decimal("0.125")) == Decimal("0.13")

    def test_format_money(self):
        assert format_money(Decimal("189")) == "189.00"
        assert format_money(Decimal("0.005")) == "0.01"

    def test_amount_left(self):
        assert compute_amount_left(Decimal("189"), Decimal("100")) == Decimal("89")

    def test_amount_left_floors_at_zero(self):
        assert compute_amount_left(Decimal("189"), Decimal("200")) == 0
