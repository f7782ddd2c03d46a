# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/bookstore/routes/auth.py
"""
Authentication API routes

- Self-registration creates CUSTOMER accounts only
- Login returns an opaque bearer token (see session_service)
- Profile and password changes act on the authenticated user
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..models import User
from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..services.errors import BookstoreError
from ..decorators import require_auth, get_bearer_token
from ..validation import validate_payload, REGISTER_POLICY, PROFILE_POLICY


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _login_payload(user: User, session, token: str) -> dict:
    return {
        "user": user.to_dict(),
        "permissions": sorted(permission_service.get_role_capabilities(user.role)),
        "token": token,
        "session": session.to_dict(),
    }


@auth_bp.post("/register")
def register_route():
    """Register a new customer and log them in."""
    try:
        patch = validate_payload(
            model=User,
            payload=request.get_json(silent=True),
            policy=REGISTER_POLICY,
            partial=False,
        )
        user = auth_service.register_customer(**patch)
        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return jsonify(_login_payload(user, session, token)), 201

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included as "Authorization: Bearer <token>" on protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        identifier = data.get("username") or data.get("email")
        password = data.get("password")

        if not all([identifier, password]):
            return jsonify({"error": "username/email and password required"}), 400

        user = auth_service.authenticate(identifier, password)
        if not user:
            current_app.logger.info("login failed identifier=%r ip=%s", identifier, request.remote_addr)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return jsonify({**_login_payload(user, session, token), "message": "Login successful"}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(get_bearer_token(), reason="User logout")
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "permissions": sorted(permission_service.get_role_capabilities(user.role)),
    }), 200


@auth_bp.put("/me")
@require_auth
def update_me_route():
    try:
        patch = validate_payload(
            model=User,
            payload=request.get_json(silent=True),
            policy=PROFILE_POLICY,
            partial=True,
        )
        user = auth_service.update_profile(g.current_user.id, **patch)
        return jsonify({"user": user.to_dict()}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    """Change own password. All sessions, including this one, are revoked."""
    try:
        data = request.get_json(silent=True) or {}
        current_password = data.get("current_password")
        new_password = data.get("new_password")
        if not all([current_password, new_password]):
            return jsonify({"error": "current_password and new_password required"}), 400

        revoked = auth_service.change_password(g.current_user.id, current_password, new_password)
        return jsonify({"message": "Password changed", "sessions_revoked": revoked}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500
