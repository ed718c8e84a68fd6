"""
Invoice rendering tests.
"""

from pharmapos.schemas import Sale
from pharmapos.services.invoice_service import invoice_context, render_invoice


def make_sale(**customer) -> Sale:
    return Sale.from_record("-Nabc123", {
        "createdAt": "2026-03-01T14:05:00Z",
        "soldBy": "Cashier",
        "salesType": customer.get("type", "retail"),
        "discountPercent": 10,
        "vatPercent": 5,
        "discountAmount": 20,
        "vatAmount": 9,
        "subTotal": 200,
        "grandTotal": 189,
        "payment": {"type": "cash", "status": "left", "amountPaid": 100, "amountLeft": 89},
        "customerInfo": customer or {"type": "retail", "name": "Hari <b>Bahadur</b>", "phone": "N/A"},
        "items": [
            {"medicineId": "med-amox", "name": "Amoxicillin 250mg", "qty": 2, "unitPrice": 50, "totalPrice": 100},
            {"medicineId": "med-para", "name": "Paracetamol 500mg", "qty": 1, "unitPrice": 100, "totalPrice": 100},
        ],
    })


class TestInvoiceContext:

    def test_formats_values(self, app):
        ctx = invoice_context(make_sale())
        assert ctx["invoice_date"] == "March 1, 2026"
        assert ctx["invoice_time"] == "02:05 PM"
        assert ctx["sales_type"] == "RETAIL"
        assert ctx["grand_total"] == "189.00"
        assert ctx["discount_percent"] == "10"
        assert ctx["vat_percent"] == "5"
        assert ctx["amount_left"] == "89.00"
        assert ctx["items"][0]["unit_price"] == "50.00"

    def test_b2b_customer_rows(self, app):
        ctx = invoice_context(make_sale(type="b2b", pharmacyName="City Pharmacy", ownerName="Ram Sharma"))
        rows = dict(ctx["customer_rows"])
        assert rows["Pharmacy"] == "City Pharmacy"
        assert rows["Owner"] == "Ram Sharma"
        assert rows["Email"] == "N/A"


class TestRenderInvoice:

    def test_renders_html(self, app):
        html = render_invoice(make_sale())
        assert "TAX INVOICE" in html
        assert "-Nabc123" in html
        assert "Amoxicillin 250mg" in html
        assert "Rs 189.00" in html
        assert app.config["INVOICE_PHARMACY_NAME"] in html

    def test_customer_values_are_escaped(self, app):
        html = render_invoice(make_sale())
        assert "Hari &lt;b&gt;Bahadur&lt;/b&gt;" in html
