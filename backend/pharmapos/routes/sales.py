# Overview: Flask API routes for persisted sales and their invoices.

from decimal import Decimal

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth
from ..schemas import RecordValidationError
from ..services.document_store import DocumentStore
from ..services.invoice_service import render_invoice
from ..services.pricing import ZERO, format_money
from ..services.sales_service import SaleFilters, get_sale, search_sales
from ..time_utils import parse_date
from ..validation import ValidationError, parse_strict_decimal


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _fetch(sale_id: str):
    try:
        return get_sale(DocumentStore(), sale_id)
    except RecordValidationError:
        current_app.logger.warning("Sale %s is malformed", sale_id)
        return None


def _optional_amount(name: str) -> Decimal | None:
    raw = request.args.get(name)
    if raw is None or not raw.strip():
        return None
    return parse_strict_decimal(raw, name)


def _optional_date(name: str):
    raw = request.args.get(name)
    if raw is None or not raw.strip():
        return None
    parsed = parse_date(raw)
    if parsed is None:
        raise ValidationError(f"{name} must be a date (YYYY-MM-DD)")
    return parsed


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Sales history, newest first.

    Query params:
    - q: free text (sale id, customer or pharmacy name, seller, item name)
    - sold_by: seller, exact (case-insensitive)
    - type: retail | b2b
    - pharmacy: exact B2B pharmacy name
    - min_total / max_total: bounds on grand total
    - date_from / date_to: inclusive day range on createdAt
    """
    try:
        filters = SaleFilters(
            search=request.args.get("q", ""),
            sold_by=request.args.get("sold_by", ""),
            sales_type=request.args.get("type", ""),
            counterparty=request.args.get("pharmacy", ""),
            min_total=_optional_amount("min_total"),
            max_total=_optional_amount("max_total"),
            date_from=_optional_date("date_from"),
            date_to=_optional_date("date_to"),
        )
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    try:
        sales = search_sales(DocumentStore(), filters)
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500

    revenue = sum((sale.grand_total for sale in sales), ZERO)
    return jsonify({
        "sales": [sale.to_dict() for sale in sales],
        "count": len(sales),
        "revenue": format_money(revenue),
    })


@sales_bp.get("/<sale_id>")
@require_auth
def get_sale_route(sale_id: str):
    sale = _fetch(sale_id)
    if sale is None:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify({"sale": sale.to_dict()})


@sales_bp.get("/<sale_id>/invoice")
@require_auth
def sale_invoice_route(sale_id: str):
    sale = _fetch(sale_id)
    if sale is None:
        return jsonify({"error": "Sale not found"}), 404
    try:
        return render_invoice(sale), 200, {"Content-Type": "text/html; charset=utf-8"}
    except Exception:
        current_app.logger.exception("Failed to render invoice for sale %s", sale_id)
        return jsonify({"error": "Internal server error"}), 500
