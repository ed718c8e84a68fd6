# Overview: Flask API route for dashboard statistics.

from flask import Blueprint, jsonify, current_app

from ..decorators import require_auth
from ..services.document_store import DocumentStore
from ..services.reporting_service import dashboard_stats


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
def dashboard_route():
    try:
        stats = dashboard_stats(
            DocumentStore(),
            low_stock_threshold=current_app.config["LOW_STOCK_THRESHOLD"],
        )
        return jsonify(stats)
    except Exception:
        current_app.logger.exception("Failed to build dashboard statistics")
        return jsonify({"error": "Internal server error"}), 500
