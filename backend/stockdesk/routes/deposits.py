# Overview: Flask API routes for cash deposits; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..errors import StockDeskError
from ..permissions import PermissionKey
from ..services import deposit_service


deposits_bp = Blueprint("deposits", __name__, url_prefix="/api/deposits")


@deposits_bp.get("")
@require_auth
@require_permission(PermissionKey.DEPOSITED_VIEW)
def list_deposits_route():
    deposits = deposit_service.list_deposits(approval=request.args.get("approval"))
    return jsonify({"deposits": [d.to_dict() for d in deposits]}), 200


@deposits_bp.post("")
@require_auth
@require_permission(PermissionKey.DEPOSITED_CREATE)
def create_deposit_route():
    """
    Request body:
    {
        "deposit_type": "bank",
        "account_name": "Main account",
        "amount": 1500,
        "account_number": "0012345",   (optional)
        "to_recipient": "GCB Bank",    (optional)
        "evidence_ref": "uploads/slip" (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        deposit = deposit_service.create_deposit(
            deposit_type=data.get("deposit_type"),
            account_name=data.get("account_name"),
            amount=data.get("amount"),
            account_number=data.get("account_number"),
            to_recipient=data.get("to_recipient"),
            evidence_ref=data.get("evidence_ref"),
            created_by_user_id=g.current_user.id,
        )
        return jsonify({"deposit": deposit.to_dict()}), 201
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create deposit")
        return jsonify({"error": "Internal server error"}), 500


@deposits_bp.get("/<int:deposit_id>")
@require_auth
@require_permission(PermissionKey.DEPOSITED_VIEW)
def get_deposit_route(deposit_id: int):
    try:
        return jsonify({"deposit": deposit_service.get_deposit(deposit_id).to_dict()}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code


@deposits_bp.delete("/<int:deposit_id>")
@require_auth
@require_permission(PermissionKey.DEPOSITED_DELETE)
def delete_deposit_route(deposit_id: int):
    try:
        deposit_service.delete_deposit(deposit_id, deleted_by_user_id=g.current_user.id)
        return jsonify({"message": "Deposit deleted"}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete deposit")
        return jsonify({"error": "Internal server error"}), 500
