# Overview: Flask API routes for stock ledger operations; parses input and returns JSON responses.

"""
Stock Ledger API Routes

- Restock applies immediately.
- Damage reports and corrections are created PENDING and change stock only
  after an owner approves them (see /api/approvals).
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..errors import StockDeskError
from ..permissions import PermissionKey
from ..services import inventory_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/products/<int:product_id>/restock")
@require_auth
@require_permission(PermissionKey.LIVE_STOCK_EDIT)
def restock_route(product_id: int):
    """
    Request body:
    {
        "boxes_added": 10,
        "kg_added": 0,
        "delivery_date": "2026-10-01",  (optional, default today)
        "expiry_date": "2026-12-31"     (optional, replaces product expiry)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        record = inventory_service.restock(
            product_id,
            data.get("boxes_added"),
            data.get("kg_added"),
            delivery_date=data.get("delivery_date"),
            expiry_date=data.get("expiry_date"),
            performed_by_user_id=g.current_user.id,
        )
        product = inventory_service.get_product(product_id)
        return jsonify({"restock": record.to_dict(), "product": product.to_dict()}), 201
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to restock product")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/products/<int:product_id>/damage")
@require_auth
@require_permission(PermissionKey.LIVE_STOCK_EDIT)
def report_damage_route(product_id: int):
    """
    Request body:
    {
        "damaged_boxes": 1,
        "damaged_kg": 2.5,
        "reason": "Crushed in transit",
        "damage_date": "2026-10-02",   (optional)
        "evidence_ref": "uploads/abc"  (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        record = inventory_service.report_damage(
            product_id,
            data.get("damaged_boxes"),
            data.get("damaged_kg"),
            data.get("reason"),
            damage_date=data.get("damage_date"),
            evidence_ref=data.get("evidence_ref"),
            reported_by_user_id=g.current_user.id,
        )
        return jsonify({"damage": record.to_dict()}), 201
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to report damage")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/products/<int:product_id>/corrections")
@require_auth
@require_permission(PermissionKey.LIVE_STOCK_EDIT)
def correct_stock_route(product_id: int):
    """
    Request body: {"box_adjustment": 5, "kg_adjustment": -2, "reason": "Recount"}
    """
    try:
        data = request.get_json(silent=True) or {}
        correction = inventory_service.correct_stock(
            product_id,
            data.get("box_adjustment"),
            data.get("kg_adjustment"),
            data.get("reason"),
            requested_by_user_id=g.current_user.id,
        )
        return jsonify({"correction": correction.to_dict()}), 201
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to request stock correction")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/movements")
@require_auth
@require_permission(PermissionKey.LIVE_STOCK_VIEW)
def list_movements_route():
    movements = inventory_service.list_stock_movements(
        product_id=request.args.get("product_id", type=int),
        movement_type=request.args.get("type"),
        status=request.args.get("status"),
        limit=min(request.args.get("limit", 100, type=int), 500),
    )
    return jsonify({"movements": [m.to_dict() for m in movements]}), 200


@inventory_bp.get("/restocks")
@require_auth
@require_permission(PermissionKey.LIVE_STOCK_VIEW)
def list_restocks_route():
    restocks = inventory_service.list_restocks(product_id=request.args.get("product_id", type=int))
    return jsonify({"restocks": [r.to_dict() for r in restocks]}), 200


@inventory_bp.get("/damage")
@require_auth
@require_permission(PermissionKey.LIVE_STOCK_VIEW)
def list_damage_route():
    records = inventory_service.list_damage_records(
        product_id=request.args.get("product_id", type=int),
        approval=request.args.get("approval"),
    )
    return jsonify({"damage": [r.to_dict() for r in records]}), 200


@inventory_bp.get("/corrections")
@require_auth
@require_permission(PermissionKey.LIVE_STOCK_VIEW)
def list_corrections_route():
    corrections = inventory_service.list_corrections(product_id=request.args.get("product_id", type=int))
    return jsonify({"corrections": [c.to_dict() for c in corrections]}), 200
