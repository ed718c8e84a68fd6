# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

"""
Admin routes.

Provides endpoints for:
- Stock commit repair (sales recorded whose stock decrement never landed)
- Medicines catalog import/export
- B2B pharmacy registration (list, register, edit, remove)
- User management (list, create, set role)

All endpoints require the admin role.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..models import User
from ..schemas import RecordValidationError
from ..services import auth_service
from ..services.auth_service import AuthError, PasswordValidationError
from ..services.catalog_service import export_medicines, import_medicines
from ..services.counterparty_service import (
    CounterpartyNotFound,
    CounterpartyValidationError,
    DuplicateCounterparty,
    list_counterparties,
    register_counterparty,
    remove_counterparty,
    update_counterparty,
)
from ..services.document_store import DocumentStore, StoreError
from ..services.sales_service import SaleError, pending_commits, repair_commit
from ..decorators import require_auth, require_role

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# =============================================================================
# SALE COMMITS
# =============================================================================

@admin_bp.get("/sale-commits/pending")
@require_auth
@require_role(auth_service.ROLE_ADMIN)
def list_pending_commits():
    commits = pending_commits(DocumentStore())
    return jsonify({
        "commits": [dict(intent, saleId=sale_id) for sale_id, intent in sorted(commits.items())],
        "count": len(commits),
    })


@admin_bp.post("/sale-commits/repair")
@require_auth
@require_role(auth_service.ROLE_ADMIN)
def repair_pending_commits_route():
    """
    Apply pending stock decrements.

    Request body (optional): {"sale_ids": [...]} to repair only those sales.
    """
    data = request.get_json(silent=True) or {}
    store = DocumentStore()
    sale_ids = data.get("sale_ids")
    if sale_ids is None:
        sale_ids = sorted(pending_commits(store))

    repaired, errors = {}, {}
    for sale_id in sale_ids:
        try:
            repaired[sale_id] = repair_commit(store, sale_id)
        except SaleError as exc:
            errors[sale_id] = str(exc)
        except StoreError:
            current_app.logger.exception("Failed to repair commit for sale %s", sale_id)
            errors[sale_id] = "Store error"

    return jsonify({"repaired": repaired, "errors": errors}), 200 if not errors else 207


# =============================================================================
# MEDICINES IMPORT / EXPORT
# =============================================================================

@admin_bp.get("/medicines/export")
@require_auth
@require_role(auth_service.ROLE_ADMIN)
def export_medicines_route():
    return jsonify(export_medicines(DocumentStore()))


@admin_bp.post("/medicines/import")
@require_auth
@require_role(auth_service.ROLE_ADMIN)
def import_medicines_route():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON format. Must be an object."}), 400
    try:
        count = import_medicines(DocumentStore(), data)
    except RecordValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    except StoreError:
        current_app.logger.exception("Failed to import medicines")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"imported": count, "message": "Medicines imported successfully"}), 200


# =============================================================================
# B2B PHARMACIES
# =============================================================================

@admin_bp.get("/pharmacies")
@require_auth
@require_role(auth_service.ROLE_ADMIN)
def list_pharmacies_route():
    entries = list_counterparties(DocumentStore(), request.args.get("q", ""))
    return jsonify({"pharmacies": [entry.to_dict() for entry in entries], "count": len(entries)})


@admin_bp.post("/pharmacies")
@require_auth
@require_role(auth_service.ROLE_ADMIN)
def register_pharmacy_route():
    """
    Register a B2B pharmacy so it can be billed.

    Request body:
    {
        "pharmacyName": "City Pharmacy",
        "registrationNumber": "1001",
        "phone": "9800000000",
        "email": "city@pharmacy.local",
        "address": "New Road, Kathmandu",
        "ownerName": "Ram Sharma"
    }
    """
    data = request.get_json(silent=True)
    user = g.current_user
    try:
        entry = register_counterparty(DocumentStore(), data, registered_by=user.display_name or user.email)
    except CounterpartyValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    except DuplicateCounterparty as exc:
        return jsonify({"error": str(exc)}), 409
    except Exception:
        current_app.logger.exception("Failed to register pharmacy")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"pharmacy": entry.to_dict(), "message": "Pharmacy registered successfully"}), 201


@admin_bp.patch("/pharmacies/<pharmacy_id>")
@require_auth
@require_role(auth_service.ROLE_ADMIN)
def update_pharmacy_route(pharmacy_id: str):
    data = request.get_json(silent=True)
    try:
        entry = update_counterparty(DocumentStore(), pharmacy_id, data)
    except CounterpartyNotFound as exc:
        return jsonify({"error": str(exc)}), 404
    except CounterpartyValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    except DuplicateCounterparty as exc:
        return jsonify({"error": str(exc)}), 409
    except Exception:
        current_app.logger.exception("Failed to update pharmacy %s", pharmacy_id)
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"pharmacy": entry.to_dict(), "message": "Pharmacy updated successfully"})


@admin_bp.delete("/pharmacies/<pharmacy_id>")
@require_auth
@require_role(auth_service.ROLE_ADMIN)
def remove_pharmacy_route(pharmacy_id: str):
    try:
        remove_counterparty(DocumentStore(), pharmacy_id)
    except CounterpartyNotFound as exc:
        return jsonify({"error": str(exc)}), 404
    except Exception:
        current_app.logger.exception("Failed to remove pharmacy %s", pharmacy_id)
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"message": "Pharmacy removed successfully"})


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_role(auth_service.ROLE_ADMIN)
def list_users():
    store = DocumentStore()
    users = db.session.query(User).order_by(User.email).all()
    result = []
    for user in users:
        user_dict = user.to_dict()
        user_dict["role"] = auth_service.get_role(user, store=store)
        result.append(user_dict)
    return jsonify({"users": result, "count": len(result)})


@admin_bp.post("/users")
@require_auth
@require_role(auth_service.ROLE_ADMIN)
def create_user_route():
    """
    Create a new user.

    Request body:
    {
        "email": "cashier@pharmacy.local",
        "password": "...",
        "role": "user",            // admin | user
        "display_name": "Cashier"  // optional
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            email=data.get("email"),
            password=data.get("password") or "",
            role=data.get("role") or auth_service.ROLE_USER,
            display_name=data.get("display_name"),
        )
    except (AuthError, PasswordValidationError) as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500

    user_dict = user.to_dict()
    user_dict["role"] = auth_service.get_role(user)
    return jsonify({"user": user_dict}), 201


@admin_bp.put("/users/<int:user_id>/role")
@require_auth
@require_role(auth_service.ROLE_ADMIN)
def set_user_role_route(user_id: int):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404
    data = request.get_json(silent=True) or {}
    try:
        auth_service.set_role(user, data.get("role"))
    except AuthError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"user_id": user.id, "role": data.get("role")})
