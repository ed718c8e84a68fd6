"""
Sales history listing tests.

Verifies newest-first ordering and each filter: free text, seller, sales
type, B2B pharmacy, grand total bounds and the inclusive day range.
"""

from datetime import date
from decimal import Decimal

import pytest

from pharmapos.services.sales_service import SaleFilters, search_sales


def history_record(created_at, grand_total, sold_by="cashier", customer=None, item="Amoxicillin 250mg"):
    customer = customer or {"type": "retail", "name": "Hari Bahadur", "phone": "9812345678"}
    return {
        "createdAt": created_at,
        "soldBy": sold_by,
        "salesType": customer["type"],
        "discountPercent": 0,
        "vatPercent": 0,
        "discountAmount": 0.0,
        "vatAmount": 0.0,
        "subTotal": float(grand_total),
        "grandTotal": float(grand_total),
        "payment": {"type": "cash", "status": "paid", "amountPaid": float(grand_total), "amountLeft": 0.0},
        "customerInfo": customer,
        "items": [{"medicineId": "med-x", "name": item, "qty": 1,
                   "unitPrice": float(grand_total), "totalPrice": float(grand_total)}],
    }


CITY = {"type": "b2b", "pharmacyName": "City Pharmacy", "ownerName": "Ram Sharma"}


@pytest.fixture
def history(store):
    store.set("sales/s1", history_record("2026-03-01T09:00:00Z", 100))
    store.set("sales/s2", history_record("2026-03-02T18:30:00Z", 250, sold_by="Admin", customer=CITY))
    store.set("sales/s3", history_record("2026-03-03T08:15:00Z", 40, item="Insulin Pen"))
    return store


def ids(sales):
    return [sale.id for sale in sales]


class TestSearchSales:

    def test_newest_first(self, history):
        assert ids(search_sales(history)) == ["s3", "s2", "s1"]
        assert ids(search_sales(history, SaleFilters())) == ["s3", "s2", "s1"]

    def test_free_text(self, history):
        assert ids(search_sales(history, SaleFilters(search="insulin"))) == ["s3"]
        assert ids(search_sales(history, SaleFilters(search="city"))) == ["s2"]
        assert ids(search_sales(history, SaleFilters(search="S1"))) == ["s1"]
        assert ids(search_sales(history, SaleFilters(search="admin"))) == ["s2"]

    def test_sold_by_is_exact(self, history):
        assert ids(search_sales(history, SaleFilters(sold_by="CASHIER"))) == ["s3", "s1"]
        assert search_sales(history, SaleFilters(sold_by="cash")) == []

    def test_sales_type_and_pharmacy(self, history):
        assert ids(search_sales(history, SaleFilters(sales_type="b2b"))) == ["s2"]
        assert ids(search_sales(history, SaleFilters(counterparty="City Pharmacy"))) == ["s2"]
        assert search_sales(history, SaleFilters(counterparty="City")) == []

    def test_total_bounds(self, history):
        filters = SaleFilters(min_total=Decimal("40"), max_total=Decimal("100"))
        assert ids(search_sales(history, filters)) == ["s3", "s1"]

    def test_day_range_is_inclusive(self, history):
        filters = SaleFilters(date_from=date(2026, 3, 1), date_to=date(2026, 3, 2))
        assert ids(search_sales(history, filters)) == ["s2", "s1"]
        assert ids(search_sales(history, SaleFilters(date_from=date(2026, 3, 3)))) == ["s3"]
