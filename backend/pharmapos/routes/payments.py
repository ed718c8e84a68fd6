# Overview: Flask API routes for payment reconciliation; parses input and returns JSON responses.

"""
Payment routes

Settle outstanding balances on recorded sales. Each payment re-reads the
sale right before writing it back, so the amount shown when the dialog was
opened is never trusted.
"""

from decimal import Decimal

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..services.document_store import DocumentStore
from ..services.payment_service import (
    PaymentReconciler,
    PendingFilters,
    SaleNotFound,
    list_pending,
    summarize,
)
from ..services.sales_service import PersistenceError
from ..time_utils import parse_date
from ..validation import ValidationError, parse_strict_decimal


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _reconciler() -> PaymentReconciler:
    return PaymentReconciler(
        DocumentStore(),
        epsilon=Decimal(str(current_app.config["PAYMENT_EPSILON"])),
        refetch_delay=current_app.config["SALE_REFETCH_DELAY_SECONDS"],
    )


def _optional_amount(name: str):
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


@payments_bp.get("/pending")
@require_auth
def pending_payments_route():
    """
    List sales with an outstanding balance, newest first.

    Query params:
    - q: free text (customer name, pharmacy name, phone, sale id)
    - type: retail | b2b
    - min_amount / max_amount: bounds on amount left
    - date_from / date_to: inclusive day range on createdAt
    """
    try:
        filters = PendingFilters(
            search=request.args.get("q", ""),
            customer_type=request.args.get("type", ""),
            min_amount=_optional_amount("min_amount"),
            max_amount=_optional_amount("max_amount"),
            date_from=_optional_date("date_from"),
            date_to=_optional_date("date_to"),
        )
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    try:
        sales = list_pending(DocumentStore(), filters)
        return jsonify({
            "sales": [sale.to_dict() for sale in sales],
            "count": len(sales),
            "summary": summarize(sales),
        })
    except Exception:
        current_app.logger.exception("Failed to list pending payments")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/<sale_id>")
@require_auth
def open_payment_route(sale_id: str):
    try:
        ticket = _reconciler().open_for_payment(sale_id)
    except SaleNotFound as exc:
        return jsonify({"error": str(exc)}), 404
    except Exception:
        current_app.logger.exception("Failed to open sale %s for payment", sale_id)
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(ticket.to_dict())


@payments_bp.post("/<sale_id>")
@require_auth
def apply_payment_route(sale_id: str):
    """
    Apply a payment.

    Request body: {"amount": "50.00", "note": "optional"}

    Returns 400 for an invalid amount or overpayment, 404 when the sale is
    gone, 502 when the write could not be completed.
    """
    data = request.get_json(silent=True) or {}
    user = g.current_user
    try:
        sale = _reconciler().apply_payment(
            sale_id,
            data.get("amount"),
            note=data.get("note"),
            updated_by=user.display_name or user.email,
        )
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    except SaleNotFound as exc:
        return jsonify({"error": str(exc)}), 404
    except PersistenceError as exc:
        return jsonify({"error": str(exc), "details": exc.details}), 502
    except Exception:
        current_app.logger.exception("Failed to apply payment to sale %s", sale_id)
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"sale": sale.to_dict(), "message": "Payment updated successfully!"})
