# Overview: Flask API routes for system operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, current_app, request

from ..decorators import require_auth, require_owner
from ..display import DisplaySettings
from ..errors import StockDeskError
from ..extensions import db
from ..services import reporting_service


system_bp = Blueprint("system", __name__, url_prefix="/api")


@system_bp.get("/health")
def health():
    """Liveness plus a trivial database round-trip."""
    try:
        db.session.execute(db.text("SELECT 1"))
        return jsonify({"status": "ok", "database": "ok"}), 200
    except Exception:
        current_app.logger.exception("Health check database query failed")
        return jsonify({"status": "degraded", "database": "error"}), 503


@system_bp.get("/system/settings")
def display_settings():
    """Display-only settings the UI needs to format amounts."""
    settings = DisplaySettings.from_config(current_app.config)
    return jsonify({
        "display": settings.to_dict(),
        "expiry_warning_days": current_app.config.get("EXPIRY_WARNING_DAYS"),
        "stock_correction_policy": current_app.config.get("STOCK_CORRECTION_POLICY"),
    }), 200


@system_bp.get("/system/stats")
@require_auth
@require_owner
def dashboard_stats_route():
    """
    Owner dashboard totals and chart series.

    Query: ?period=daily|weekly|monthly (default monthly)
    """
    try:
        return jsonify(reporting_service.dashboard_stats(request.args.get("period"))), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build dashboard stats")
        return jsonify({"error": "Internal server error"}), 500
