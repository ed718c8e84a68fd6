# Overview: Printable invoice rendering from an immutable sale snapshot.

from __future__ import annotations

from flask import current_app, render_template

from pharmapos.schemas import SALES_TYPE_RETAIL, Sale
from pharmapos.time_utils import parse_iso_datetime
from .pricing import format_money


def _percent(value) -> str:
    return format(value.normalize(), "f")


def pharmacy_header() -> dict:
    cfg = current_app.config
    return {
        "name": cfg["INVOICE_PHARMACY_NAME"],
        "owner": cfg["INVOICE_PHARMACY_OWNER"],
        "address": cfg["INVOICE_PHARMACY_ADDRESS"],
        "phone": cfg["INVOICE_PHARMACY_PHONE"],
        "email": cfg["INVOICE_PHARMACY_EMAIL"],
        "reg": cfg["INVOICE_PHARMACY_REG"],
        "hours": cfg["INVOICE_PHARMACY_HOURS"],
    }


def invoice_context(sale: Sale) -> dict:
    """Formatting only: every value the template prints, already as text."""
    created = parse_iso_datetime(sale.created_at) if sale.created_at else None
    customer = sale.customer_info.to_record()
    if sale.sales_type == SALES_TYPE_RETAIL:
        customer_rows = [("Name", customer.get("name")), ("Phone", customer.get("phone"))]
    else:
        customer_rows = [
            ("Pharmacy", customer.get("pharmacyName") or "N/A"),
            ("Owner", customer.get("ownerName") or "N/A"),
            ("Phone", customer.get("phone") or "N/A"),
            ("Email", customer.get("email") or "N/A"),
            ("Address", customer.get("address") or "N/A"),
        ]

    return {
        "pharmacy": pharmacy_header(),
        "currency": current_app.config["CURRENCY_LABEL"],
        "sale_id": sale.id,
        "invoice_date": created.strftime("%B %d, %Y").replace(" 0", " ") if created else "",
        "invoice_time": created.strftime("%I:%M %p") if created else "",
        "sold_by": sale.sold_by,
        "sales_type": sale.sales_type.upper(),
        "customer_rows": customer_rows,
        "items": [
            {
                "name": item.name,
                "qty": item.qty,
                "unit_price": format_money(item.unit_price),
                "total_price": format_money(item.total_price),
            }
            for item in sale.items
        ],
        "sub_total": format_money(sale.sub_total),
        "discount_percent": _percent(sale.discount_percent),
        "discount_amount": format_money(sale.discount_amount),
        "vat_percent": _percent(sale.vat_percent),
        "vat_amount": format_money(sale.vat_amount),
        "grand_total": format_money(sale.grand_total),
        "payment_type": sale.payment.type,
        "payment_status": sale.payment.status,
        "amount_paid": format_money(sale.payment.amount_paid),
        "amount_left": format_money(sale.payment.amount_left),
    }


def render_invoice(sale: Sale) -> str:
    return render_template("invoice.html", **invoice_context(sale))
