# Overview: Flask API routes for billing sessions; parses input and returns JSON responses.

"""
Billing routes

One billing session per open billing screen. The session keeps the cart,
the checkout form and its own catalog/counterparty snapshots until it is
closed; only the user who opened it can see it.
"""

from flask import Blueprint, request, jsonify, g, current_app, url_for

from ..decorators import require_auth
from ..services.billing_session_service import BillingSession, BillingSessionRegistry
from ..services.cart_service import CartError
from ..services.document_store import DocumentStore
from ..services.sales_service import PersistenceError, SaleValidationError
from ..validation import ValidationError


billing_bp = Blueprint("billing", __name__, url_prefix="/api/billing")


def get_registry() -> BillingSessionRegistry:
    return current_app.extensions["billing_sessions"]


def _sold_by() -> str:
    user = g.current_user
    return user.display_name or user.email


def _load_session(session_id: str):
    return get_registry().get(session_id, g.current_user.id)


def _not_found():
    return jsonify({"error": "Billing session not found"}), 404


def _cart_error(exc: CartError):
    return jsonify({"error": str(exc), "title": exc.title, "item_id": exc.item_id}), 400


# =============================================================================
# SESSIONS
# =============================================================================

@billing_bp.post("/sessions")
@require_auth
def open_session_route():
    try:
        session = BillingSession.open(
            DocumentStore(),
            owner_id=g.current_user.id,
            sold_by=_sold_by(),
            expiry_min_days=current_app.config["EXPIRY_MIN_DAYS"],
        )
        get_registry().add(session)
        return jsonify({"session": session.to_dict()}), 201
    except Exception:
        current_app.logger.exception("Failed to open billing session")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.get("/sessions/<session_id>")
@require_auth
def get_session_route(session_id: str):
    session = _load_session(session_id)
    if session is None:
        return _not_found()
    return jsonify({"session": session.to_dict()})


@billing_bp.delete("/sessions/<session_id>")
@require_auth
def close_session_route(session_id: str):
    if not get_registry().close(session_id, g.current_user.id):
        return _not_found()
    return jsonify({"message": "Billing session closed"})


@billing_bp.post("/sessions/<session_id>/refresh")
@require_auth
def refresh_session_route(session_id: str):
    session = _load_session(session_id)
    if session is None:
        return _not_found()
    try:
        session.refresh()
        return jsonify({"session": session.to_dict()})
    except Exception:
        current_app.logger.exception("Failed to refresh billing session %s", session_id)
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# SEARCH
# =============================================================================

@billing_bp.get("/sessions/<session_id>/catalog")
@require_auth
def search_catalog_route(session_id: str):
    session = _load_session(session_id)
    if session is None:
        return _not_found()
    items = session.catalog.search(
        request.args.get("q", ""),
        limit=current_app.config["SEARCH_RESULT_LIMIT"],
        on=session.cart.today,
    )
    return jsonify({"items": [item.to_dict() for item in items], "count": len(items)})


@billing_bp.get("/sessions/<session_id>/counterparties")
@require_auth
def search_counterparties_route(session_id: str):
    session = _load_session(session_id)
    if session is None:
        return _not_found()
    entries = session.directory.search(
        request.args.get("q", ""),
        limit=current_app.config["SEARCH_RESULT_LIMIT"],
    )
    return jsonify({"counterparties": [entry.to_dict() for entry in entries], "count": len(entries)})


# =============================================================================
# CART LINES
# =============================================================================

@billing_bp.post("/sessions/<session_id>/lines")
@require_auth
def add_line_route(session_id: str):
    session = _load_session(session_id)
    if session is None:
        return _not_found()

    data = request.get_json(silent=True) or {}
    item_id = data.get("itemId")
    if not item_id:
        return jsonify({"error": "itemId is required"}), 400

    try:
        session.cart.add_line(item_id, data.get("delta", 1))
    except CartError as exc:
        return _cart_error(exc)
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    return jsonify({"session": session.to_dict()}), 201


@billing_bp.put("/sessions/<session_id>/lines/<item_id>")
@require_auth
def set_line_qty_route(session_id: str, item_id: str):
    session = _load_session(session_id)
    if session is None:
        return _not_found()

    data = request.get_json(silent=True) or {}
    line = session.cart.set_line_qty(item_id, data.get("qty"))
    if line is None:
        return jsonify({"error": "Line not found"}), 404
    return jsonify({"session": session.to_dict()})


@billing_bp.delete("/sessions/<session_id>/lines/<item_id>")
@require_auth
def remove_line_route(session_id: str, item_id: str):
    """
    Remove a line. The operator must confirm: without ?confirm=true nothing
    is removed and 409 is returned.
    """
    session = _load_session(session_id)
    if session is None:
        return _not_found()

    if request.args.get("confirm", "false").lower() != "true":
        line = session.cart.get(item_id)
        return jsonify({
            "error": "Removal requires confirmation",
            "requires_confirmation": True,
            "name": line.name if line else None,
        }), 409

    session.cart.remove_line(item_id)
    return jsonify({"session": session.to_dict()})


# =============================================================================
# FORM AND CHECKOUT
# =============================================================================

@billing_bp.patch("/sessions/<session_id>/form")
@require_auth
def update_form_route(session_id: str):
    session = _load_session(session_id)
    if session is None:
        return _not_found()

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "JSON object required"}), 400

    session.form.update(data)
    return jsonify({"session": session.to_dict()})


@billing_bp.post("/sessions/<session_id>/checkout")
@require_auth
def checkout_route(session_id: str):
    """
    Submit the cart as a sale.

    Returns:
        201: sale recorded and stock decremented
        400: validation or stock problem (nothing written)
        409: a submission for this session is already in progress
        502: a store write failed (see sale_recorded)
    """
    session = _load_session(session_id)
    if session is None:
        return _not_found()

    try:
        sale = session.checkout()
    except SaleValidationError as exc:
        return jsonify({"error": exc.reason, "title": exc.title, "details": exc.details}), 400
    except PersistenceError as exc:
        return jsonify({"error": str(exc), "details": exc.details}), 502
    except Exception:
        current_app.logger.exception("Failed to check out billing session %s", session_id)
        return jsonify({"error": "Internal server error"}), 500

    if sale is None:
        return jsonify({"error": "Sale already in progress"}), 409

    return jsonify({
        "sale": sale.to_dict(),
        "invoice_url": url_for("sales.sale_invoice_route", sale_id=sale.id),
        "session": session.to_dict(),
    }), 201
