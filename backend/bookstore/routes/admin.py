# Overview: Flask API routes for admin user management.

from flask import Blueprint, request, jsonify, current_app, g

from ..models import User
from ..services import auth_service
from ..services.errors import BookstoreError
from ..decorators import require_auth, require_permission
from ..validation import validate_payload, ADMIN_USER_CREATE_POLICY, ADMIN_USER_UPDATE_POLICY


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin/users")


@admin_bp.get("")
@require_auth
@require_permission("MANAGE_USERS")
def list_users_route():
    try:
        users = auth_service.list_users(
            role=request.args.get("role") or None,
            search=request.args.get("search"),
            include_inactive=request.args.get("include_inactive", "true").lower() == "true",
        )
        return jsonify({"users": [u.to_dict() for u in users]}), 200
    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code


@admin_bp.get("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def get_user_route(user_id: int):
    try:
        return jsonify({"user": auth_service.get_user(user_id).to_dict()}), 200
    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code


@admin_bp.post("")
@require_auth
@require_permission("MANAGE_USERS")
def create_user_route():
    """Create a user with any role. Body: username, email, password, full_name, role, phone_number?, address?"""
    try:
        patch = validate_payload(
            model=User,
            payload=request.get_json(silent=True),
            policy=ADMIN_USER_CREATE_POLICY,
            partial=False,
        )
        user = auth_service.create_user(**patch)
        current_app.logger.info(
            "user created user_id=%s role=%s by admin user_id=%s", user.id, user.role, g.current_user.id
        )
        return jsonify({"user": user.to_dict()}), 201

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.put("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def update_user_route(user_id: int):
    try:
        patch = validate_payload(
            model=User,
            payload=request.get_json(silent=True),
            policy=ADMIN_USER_UPDATE_POLICY,
            partial=True,
        )
        if patch.get("is_active") is False and user_id == g.current_user.id:
            return jsonify({"error": "Cannot deactivate your own account",
                            "code": "VALIDATION_ERROR", "details": {}}), 400

        user = auth_service.update_user(user_id, **patch)
        return jsonify({"user": user.to_dict()}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.delete("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def deactivate_user_route(user_id: int):
    """Soft delete: users own orders and ledger rows, so they are deactivated, never removed."""
    try:
        user = auth_service.deactivate_user(user_id, actor_user_id=g.current_user.id)
        return jsonify({"user": user.to_dict()}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to deactivate user")
        return jsonify({"error": "Internal server error"}), 500
