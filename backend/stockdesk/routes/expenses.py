# Overview: Flask API routes for expenses; owner-only. Parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_owner
from ..errors import StockDeskError
from ..services import expense_service


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


# =============================================================================
# CATEGORIES
# =============================================================================

@expenses_bp.get("/categories")
@require_auth
@require_owner
def list_categories_route():
    categories = expense_service.list_categories()
    return jsonify({"categories": [c.to_dict() for c in categories]}), 200


@expenses_bp.post("/categories")
@require_auth
@require_owner
def create_category_route():
    """Request body: {"name": "Fuel", "budget": 500}  (budget optional)"""
    try:
        data = request.get_json(silent=True) or {}
        category = expense_service.create_category(data.get("name"), data.get("budget"))
        return jsonify({"category": category.to_dict()}), 201
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create expense category")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.patch("/categories/<int:category_id>")
@require_auth
@require_owner
def update_category_route(category_id: int):
    try:
        data = request.get_json(silent=True) or {}
        category = expense_service.update_category(category_id, data)
        return jsonify({"category": category.to_dict()}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update expense category")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.delete("/categories/<int:category_id>")
@require_auth
@require_owner
def delete_category_route(category_id: int):
    try:
        expense_service.delete_category(category_id)
        return jsonify({"message": "Category deleted"}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete expense category")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# EXPENSES
# =============================================================================

@expenses_bp.get("")
@require_auth
@require_owner
def list_expenses_route():
    try:
        expenses = expense_service.list_expenses(
            category_id=request.args.get("category_id", type=int),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
        )
        return jsonify({"expenses": [e.to_dict() for e in expenses]}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code


@expenses_bp.post("")
@require_auth
@require_owner
def create_expense_route():
    """
    Request body:
    {
        "title": "Generator fuel",
        "category_id": 1,
        "amount": 120,
        "expense_date": "2026-10-18",
        "status": "paid",                  (optional, default pending)
        "added_by": "Kofi",                (optional, default current user)
        "receipt_ref": "uploads/receipt"   (optional)
    }
    """
    try:
        data = dict(request.get_json(silent=True) or {})
        data.setdefault("added_by", g.current_user.username)
        expense = expense_service.create_expense(data, created_by_user_id=g.current_user.id)
        return jsonify({"expense": expense.to_dict()}), 201
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.get("/stats")
@require_auth
@require_owner
def expense_stats_route():
    try:
        return jsonify(expense_service.expense_stats(request.args.get("period"))), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code


@expenses_bp.get("/<int:expense_id>")
@require_auth
@require_owner
def get_expense_route(expense_id: int):
    try:
        return jsonify({"expense": expense_service.get_expense(expense_id).to_dict()}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code


@expenses_bp.patch("/<int:expense_id>")
@require_auth
@require_owner
def update_expense_route(expense_id: int):
    try:
        data = request.get_json(silent=True) or {}
        expense = expense_service.update_expense(expense_id, data)
        return jsonify({"expense": expense.to_dict()}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_owner
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(expense_id)
        return jsonify({"message": "Expense deleted"}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete expense")
        return jsonify({"error": "Internal server error"}), 500
