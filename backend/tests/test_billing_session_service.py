"""
Billing session tests.
"""

from pharmapos.services.billing_session_service import BillingSession, BillingSessionRegistry


def open_session(store, owner_id=1):
    return BillingSession.open(store, owner_id=owner_id, sold_by="Cashier")


class TestBillingSession:

    def test_open_loads_snapshots(self, seeded_store):
        session = open_session(seeded_store)
        assert len(session.catalog) == 6
        assert session.directory.count() == 2
        assert session.to_dict()["state"] == "Idle"

    def test_preview_paid(self, seeded_store):
        session = open_session(seeded_store)
        session.cart.add_line("med-amox", 2)
        session.cart.add_line("med-para")
        session.form.update({"discountPercent": "10", "vatPercent": "5", "paymentStatus": "paid"})
        preview = session.preview()
        assert preview["grandTotal"] == "189.00"
        assert preview["amountLeft"] == "0.00"

    def test_preview_left(self, seeded_store):
        session = open_session(seeded_store)
        session.cart.add_line("med-amox", 2)
        session.cart.add_line("med-para")
        session.form.update({"discountPercent": "10", "vatPercent": "5", "paymentStatus": "left", "amountPaid": "100"})
        assert session.preview()["amountLeft"] == "89.00"

    def test_preview_left_overpaid_floors_at_zero(self, seeded_store):
        session = open_session(seeded_store)
        session.cart.add_line("med-amox")
        session.form.update({"paymentStatus": "left", "amountPaid": "500"})
        assert session.preview()["amountLeft"] == "0.00"

    def test_form_update_ignores_unknown_fields(self, seeded_store):
        session = open_session(seeded_store)
        session.form.update({"salesType": "retail", "bogus": 1})
        assert session.form.sales_type == "retail"
        assert "bogus" not in session.form.to_dict()

    def test_checkout(self, seeded_store):
        session = open_session(seeded_store)
        session.cart.add_line("med-amox")
        session.form.update({
            "salesType": "retail", "customerName": "Hari", "paymentType": "cash", "paymentStatus": "paid",
        })
        sale = session.checkout()
        assert sale.sold_by == "Cashier"
        assert seeded_store.get("medicines/med-amox/quantity") == 9

    def test_refresh(self, seeded_store):
        session = open_session(seeded_store)
        seeded_store.set("medicines/med-cetz/quantity", 4)
        session.refresh()
        assert session.catalog.get("med-cetz").quantity == 4


class TestRegistry:

    def test_owner_only(self, seeded_store):
        registry = BillingSessionRegistry()
        session = registry.add(open_session(seeded_store, owner_id=1))
        assert registry.get(session.id, 1) is session
        assert registry.get(session.id, 2) is None
        assert registry.close(session.id, 2) is False
        assert registry.close(session.id, 1) is True
        assert len(registry) == 0
