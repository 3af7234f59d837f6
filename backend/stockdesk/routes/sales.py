# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""
Sales API Routes

Payment status on input is one of "Paid", "Half Paid" or "Pending".
Edits and deletions of a recorded sale are audited and only take effect
once approved through /api/approvals.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..errors import StockDeskError
from ..permissions import PermissionKey
from ..services import inventory_service, reporting_service, sales_service


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _sale_fields(data: dict) -> dict:
    return {
        "payment_status": data.get("payment_status"),
        "amount_paid": data.get("amount_paid"),
        "client_name": data.get("client_name"),
        "phone_number": data.get("phone_number"),
    }


@sales_bp.post("/quote")
@require_auth
@require_permission(PermissionKey.ADD_SALES_VIEW)
def quote_route():
    """Preview totals for a sale without recording anything."""
    try:
        data = request.get_json(silent=True) or {}
        product = inventory_service.get_product(data.get("product_id"))
        quote = sales_service.build_quote(
            product,
            data.get("boxes_quantity"),
            data.get("kg_quantity"),
            **_sale_fields(data),
        )
        return jsonify({"quote": quote.to_dict()}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to quote sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("")
@require_auth
@require_permission(PermissionKey.ADD_SALES_VIEW)
def create_sale_route():
    """
    Request body:
    {
        "product_id": 1,
        "boxes_quantity": 2,
        "kg_quantity": 0,
        "payment_status": "Half Paid",
        "amount_paid": 100,          (Half Paid only; defaults to half the total)
        "payment_method": "Cash",
        "client_name": "Ama",        (required unless Paid)
        "phone_number": "0240000000" (required unless Paid)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.create_sale(
            data.get("product_id"),
            data.get("boxes_quantity"),
            data.get("kg_quantity"),
            payment_method=data.get("payment_method"),
            performed_by_user_id=g.current_user.id,
            **_sale_fields(data),
        )
        return jsonify({"sale": sale.to_dict()}), 201
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
@require_permission(PermissionKey.MANAGE_SALES_VIEW)
def list_sales_route():
    sales = sales_service.list_sales(
        payment_status=request.args.get("payment_status"),
        client_name=request.args.get("client_name"),
        product_id=request.args.get("product_id", type=int),
    )
    return jsonify({"sales": [s.to_dict() for s in sales]}), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission(PermissionKey.MANAGE_SALES_VIEW)
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.post("/<int:sale_id>/edit-requests")
@require_auth
@require_permission(PermissionKey.MANAGE_SALES_EDIT)
def request_edit_route(sale_id: int):
    """
    Request body: {"reason": "Miscounted", "boxes_quantity": 3, "kg_quantity": 0, "payment_method": "Card"}
    Omitted fields keep their recorded values.
    """
    try:
        data = request.get_json(silent=True) or {}
        audit = sales_service.request_sale_edit(
            sale_id,
            reason=data.get("reason"),
            boxes_quantity=data.get("boxes_quantity"),
            kg_quantity=data.get("kg_quantity"),
            payment_method=data.get("payment_method"),
            requested_by_user_id=g.current_user.id,
        )
        return jsonify({"audit": audit.to_dict()}), 201
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to request sale edit")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/delete-requests")
@require_auth
@require_permission(PermissionKey.MANAGE_SALES_DELETE)
def request_delete_route(sale_id: int):
    try:
        data = request.get_json(silent=True) or {}
        audit = sales_service.request_sale_delete(
            sale_id,
            reason=data.get("reason"),
            requested_by_user_id=g.current_user.id,
        )
        return jsonify({"audit": audit.to_dict()}), 201
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to request sale deletion")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/payments")
@require_auth
@require_permission(PermissionKey.MANAGE_SALES_EDIT)
def add_payment_route(sale_id: int):
    """Request body: {"amount": 50, "payment_method": "Cash"}"""
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.add_payment(
            sale_id,
            data.get("amount"),
            payment_method=data.get("payment_method"),
            received_by_user_id=g.current_user.id,
        )
        return jsonify({"sale": sale.to_dict()}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale payment")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/audits")
@require_auth
@require_permission(PermissionKey.AUDIT_SALES_VIEW)
def list_audits_route():
    audits = sales_service.list_sale_audits(
        status=request.args.get("status"),
        sale_id=request.args.get("sale_id", type=int),
    )
    return jsonify({"audits": [a.to_dict() for a in audits]}), 200


@sales_bp.get("/stats")
@require_auth
@require_permission(PermissionKey.MANAGE_SALES_VIEW)
def sales_stats_route():
    """Query: ?period=daily|weekly|monthly (default monthly)"""
    try:
        return jsonify(reporting_service.sales_stats(request.args.get("period"))), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code


# =============================================================================
# DEBTORS
# =============================================================================

@sales_bp.get("/debtors")
@require_auth
@require_permission(PermissionKey.DEBTORS_VIEW)
def list_debtors_route():
    return jsonify({"debtors": sales_service.list_debtors()}), 200


@sales_bp.post("/debtors/payments")
@require_auth
@require_permission(PermissionKey.DEBTORS_VIEW)
def debtor_payment_route():
    """
    Apply a payment across a client's unpaid sales, oldest first.

    Request body: {"client_name": "Ama", "amount": 300, "payment_method": "Cash"}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = sales_service.process_debtor_payment(
            data.get("client_name"),
            data.get("amount"),
            payment_method=data.get("payment_method"),
            received_by_user_id=g.current_user.id,
        )
        return jsonify(result), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to process debtor payment")
        return jsonify({"error": "Internal server error"}), 500
