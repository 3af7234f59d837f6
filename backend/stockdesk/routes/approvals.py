# Overview: Flask API routes for approval decisions; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_owner
from ..errors import PermissionDenied, StockDeskError
from ..services import approval_service, permission_service


approvals_bp = Blueprint("approvals", __name__, url_prefix="/api/approvals")


def _audit_kwargs() -> dict:
    return {
        "resource": request.path,
        "ip_address": request.remote_addr,
        "user_agent": request.headers.get("User-Agent"),
    }


@approvals_bp.get("")
@require_auth
@require_owner
def list_approvals_route():
    """
    Query params:
        status: PENDING | APPROVED | REJECTED
        kind: SALE_EDIT | SALE_DELETE | STOCK_CORRECTION | DAMAGE_REPORT | PRODUCT_EDIT | DEPOSIT
    """
    try:
        requests_ = approval_service.list_requests(
            status=request.args.get("status"),
            kind=request.args.get("kind"),
            target_type=request.args.get("target_type"),
        )
        return jsonify({"approval_requests": [r.to_dict() for r in requests_]}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code


@approvals_bp.get("/<int:request_id>")
@require_auth
@require_owner
def get_approval_route(request_id: int):
    try:
        approval = approval_service.get_request(request_id)
        return jsonify({"approval_request": approval.to_dict()}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code


@approvals_bp.post("/<int:request_id>/decision")
@require_auth
def decide_route(request_id: int):
    """
    Approve or reject a pending request.

    Request body: {"decision": "approve" | "reject", "reject_reason": "..."}

    Sale edit/delete requests can be decided by staff holding
    audit_sales_confirm / audit_sales_reject; everything else is owner-only.
    """
    try:
        data = request.get_json(silent=True) or {}
        decision = data.get("decision")
        approval = approval_service.get_request(request_id)

        required = approval_service.required_permission(approval.kind, decision)
        if required is None:
            permission_service.require_owner(g.current_user, **_audit_kwargs())
        else:
            permission_service.require_permission(g.current_user, required, **_audit_kwargs())

        approval = approval_service.decide(
            request_id,
            decision,
            decided_by_user_id=g.current_user.id,
            reject_reason=data.get("reject_reason"),
        )
        return jsonify({"approval_request": approval.to_dict()}), 200
    except PermissionDenied as e:
        return jsonify(e.to_dict()), 403
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to decide approval request")
        return jsonify({"error": "Internal server error"}), 500


@approvals_bp.post("/<int:request_id>/reprocess")
@require_auth
@require_owner
def reprocess_route(request_id: int):
    """Re-apply an approved request whose change never landed. No-op if already applied."""
    try:
        approval = approval_service.reprocess(request_id)
        return jsonify({"approval_request": approval.to_dict()}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reprocess approval request")
        return jsonify({"error": "Internal server error"}), 500


@approvals_bp.post("/reprocess")
@require_auth
@require_owner
def reprocess_all_route():
    try:
        return jsonify(approval_service.reprocess_unapplied()), 200
    except Exception:
        current_app.logger.exception("Failed to reprocess approval requests")
        return jsonify({"error": "Internal server error"}), 500
