"""
Dashboard statistics tests.
"""

from pharmapos.services.reporting_service import dashboard_stats


class TestDashboardStats:

    def test_stock_counters(self, seeded_store):
        stats = dashboard_stats(seeded_store)
        assert stats["inStock"] == 5
        assert stats["finished"] == 1
        assert stats["expired"] == 0
        assert stats["nearExpiry"] == 2
        assert stats["lowStock"] == 4
        assert stats["pharmacies"] == 2

    def test_expired_items(self, seeded_store):
        seeded_store.set("medicines/med-amox/expiry", "2020-01-01")
        stats = dashboard_stats(seeded_store)
        assert stats["expired"] == 1

    def test_low_stock_threshold(self, seeded_store):
        assert dashboard_stats(seeded_store, low_stock_threshold=2)["lowStock"] == 1

    def test_sales_totals(self, seeded_store):
        seeded_store.update({
            "sales/a": {
                "salesType": "retail", "grandTotal": 189,
                "payment": {"type": "cash", "status": "left", "amountPaid": 100, "amountLeft": 89},
                "customerInfo": {"type": "retail", "name": "Hari"},
            },
            "sales/b": {
                "salesType": "retail", "grandTotal": 50.5,
                "payment": {"type": "cash", "status": "paid", "amountPaid": 50.5, "amountLeft": 0},
                "customerInfo": {"type": "retail", "name": "Gita"},
            },
        })
        stats = dashboard_stats(seeded_store)
        assert stats["salesCount"] == 2
        assert stats["revenue"] == "239.50"
        assert stats["outstanding"] == "89.00"

    def test_empty_store(self, store):
        stats = dashboard_stats(store)
        assert stats["inStock"] == 0
        assert stats["salesCount"] == 0
        assert stats["revenue"] == "0.00"
