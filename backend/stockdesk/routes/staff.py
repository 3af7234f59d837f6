# Overview: Flask API routes for staff accounts and permissions; owner-only.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_owner
from ..errors import StockDeskError
from ..permissions import get_all_permission_keys, get_permission_definition
from ..services import auth_service, permission_service


staff_bp = Blueprint("staff", __name__, url_prefix="/api/staff")


@staff_bp.get("/permission-definitions")
@require_auth
@require_owner
def permission_definitions_route():
    """All permission keys grouped the way the staff settings screen shows them."""
    definitions = [get_permission_definition(key) for key in get_all_permission_keys()]
    return jsonify({"permissions": definitions}), 200


@staff_bp.get("")
@require_auth
@require_owner
def list_staff_route():
    include_inactive = request.args.get("include_inactive", "true").lower() != "false"
    staff = auth_service.list_staff(include_inactive=include_inactive)
    return jsonify({"staff": [u.to_dict() for u in staff]}), 200


@staff_bp.post("")
@require_auth
@require_owner
def create_staff_route():
    """
    Request body:
    {
        "username": "kofi",
        "email": "kofi@example.com",
        "password": "Str0ng!pass",
        "full_name": "Kofi Mensah"  (optional)
    }
    New staff start with every permission disabled.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = (data.get("username") or "").strip()
        email = (data.get("email") or "").strip()
        password = data.get("password")

        if not all([username, email, password]):
            return jsonify({"error": "username, email and password required"}), 400

        user = auth_service.create_user(
            username,
            email,
            password,
            full_name=data.get("full_name"),
            is_owner=False,
        )
        return jsonify({"user": user.to_dict()}), 201
    except auth_service.PasswordValidationError as e:
        return jsonify({"error": str(e), "field": "password"}), 400
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create staff user")
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.patch("/<int:user_id>/active")
@require_auth
@require_owner
def set_active_route(user_id: int):
    """Request body: {"is_active": false}"""
    try:
        data = request.get_json(silent=True) or {}
        if "is_active" not in data:
            return jsonify({"error": "is_active required", "field": "is_active"}), 400
        if user_id == g.current_user.id:
            return jsonify({"error": "Cannot change your own active flag", "field": "user_id"}), 400
        user = auth_service.set_user_active(user_id, bool(data["is_active"]))
        return jsonify({"user": user.to_dict()}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update staff active flag")
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.get("/<int:user_id>/permissions")
@require_auth
@require_owner
def get_permissions_route(user_id: int):
    try:
        user = auth_service.get_user(user_id)
        return jsonify({
            "user_id": user.id,
            "permissions": permission_service.get_staff_permissions(user.id),
            "capabilities": permission_service.capabilities_for(user),
        }), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code


@staff_bp.put("/<int:user_id>/permissions/<permission_key>")
@require_auth
@require_owner
def set_permission_route(user_id: int, permission_key: str):
    """
    Toggle one key. Request body: {"enabled": true}

    Disabling a view key disables the rest of its sub-group; enabling any
    other key turns its view key on too. Takes effect on the next request.
    """
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data.get("enabled"), bool):
            return jsonify({"error": "enabled must be true or false", "field": "enabled"}), 400

        permissions = permission_service.set_staff_permission(
            user_id,
            permission_key,
            data["enabled"],
            updated_by_user_id=g.current_user.id,
        )
        permission_service.log_security_event(
            user_id=g.current_user.id,
            event_type="PERMISSION_CHANGED",
            success=True,
            resource=request.path,
            action=permission_key,
            reason=f"{'Enabled' if data['enabled'] else 'Disabled'} for user {user_id}",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"user_id": user_id, "permissions": permissions}), 200
    except StockDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update staff permission")
        return jsonify({"error": "Internal server error"}), 500
