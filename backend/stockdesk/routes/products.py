# Overview: Flask API routes for products and categories; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..errors import StockDeskError
from ..permissions import PermissionKey
from ..services import inventory_service, products_service


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


# =============================================================================
# CATEGORIES
# =============================================================================

@products_bp.get("/categories")
@require_auth
@require_permission(PermissionKey.PRODUCT_CATEGORIES_VIEW)
def list_categories_route():
    categories = products_service.list_categories()
    return jsonify({"categories": [c.to_dict() for c in categories]}), 200


@products_bp.post("/categories")
@require_auth
@require_permission(PermissionKey.PRODUCT_CATEGORIES_CREATE)
def create_category_route():
    try:
        data = request.get_json(silent=True) or {}
        category = products_service.create_category(data.get("name"))
        return jsonify({"category": category.to_dict()}), 201
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.patch("/categories/<int:category_id>")
@require_auth
@require_permission(PermissionKey.PRODUCT_CATEGORIES_EDIT)
def rename_category_route(category_id: int):
    try:
        data = request.get_json(silent=True) or {}
        category = products_service.rename_category(category_id, data.get("name"))
        return jsonify({"category": category.to_dict()}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to rename category")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/categories/<int:category_id>")
@require_auth
@require_permission(PermissionKey.PRODUCT_CATEGORIES_DELETE)
def delete_category_route(category_id: int):
    try:
        products_service.delete_category(category_id)
        return jsonify({"message": "Category deleted"}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PRODUCTS
# =============================================================================

@products_bp.get("")
@require_auth
@require_permission(PermissionKey.LIVE_STOCK_VIEW)
def list_products_route():
    """
    Query params:
        category_id: optional filter
        q: optional name/SKU search
    """
    products = products_service.list_products(
        category_id=request.args.get("category_id", type=int),
        search=request.args.get("q"),
    )
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.post("")
@require_auth
@require_permission(PermissionKey.PRODUCT_ADDING_CREATE)
def create_product_route():
    """
    Create a product. Per-kg prices and profits are derived from the ratio.

    Request body:
    {
        "name": "Tilapia",
        "box_to_kg_ratio": 10,
        "cost_per_box": 80,
        "price_per_box": 100,
        "quantity_box": 5,          (optional)
        "quantity_kg": 50,          (optional)
        "low_stock_threshold": 2,   (optional)
        "expiry_date": "2026-12-31" (optional)
    }
    """
    try:
        product = products_service.create_product(
            request.get_json(silent=True) or {},
            created_by_user_id=g.current_user.id,
        )
        return jsonify({"product": product.to_dict()}), 201
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/low-stock")
@require_auth
@require_permission(PermissionKey.LIVE_STOCK_VIEW)
def low_stock_route():
    products = inventory_service.list_low_stock()
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.get("/expiring")
@require_auth
@require_permission(PermissionKey.LIVE_STOCK_VIEW)
def expiring_route():
    try:
        products = inventory_service.list_expiring(request.args.get("days", type=int))
        return jsonify({"products": [p.to_dict() for p in products]}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission(PermissionKey.LIVE_STOCK_VIEW)
def get_product_route(product_id: int):
    try:
        product = inventory_service.get_product(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.post("/<int:product_id>/edit-requests")
@require_auth
@require_permission(PermissionKey.LIVE_STOCK_EDIT)
def request_product_edit_route(product_id: int):
    """
    Propose changing one field (name, box_to_kg_ratio, cost_per_box,
    price_per_box, low_stock_threshold). Takes effect on approval.

    Request body: {"field": "price_per_box", "new_value": 120, "reason": "Supplier price up"}
    """
    try:
        data = request.get_json(silent=True) or {}
        approval = products_service.request_product_edit(
            product_id,
            data.get("field"),
            data.get("new_value"),
            reason=data.get("reason"),
            requested_by_user_id=g.current_user.id,
        )
        return jsonify({"approval_request": approval.to_dict()}), 201
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to request product edit")
        return jsonify({"error": "Internal server error"}), 500
