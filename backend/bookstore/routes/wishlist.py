# Overview: Flask API routes for the authenticated user's wishlist.

from flask import Blueprint, request, jsonify, current_app, g

from ..services import wishlist_service
from ..services.errors import BookstoreError
from ..decorators import require_auth, require_permission
from ..validation import parse_int, enforce_rules_cart_quantity


wishlist_bp = Blueprint("wishlist", __name__, url_prefix="/api/wishlist")


@wishlist_bp.get("")
@require_auth
@require_permission("MANAGE_OWN_CART")
def list_wishlist_route():
    items = wishlist_service.list_wishlist(g.current_user.id)
    return jsonify({"items": [i.to_dict() for i in items]}), 200


@wishlist_bp.get("/<int:book_id>")
@require_auth
@require_permission("MANAGE_OWN_CART")
def wishlist_contains_route(book_id: int):
    return jsonify({
        "book_id": book_id,
        "in_wishlist": wishlist_service.is_in_wishlist(g.current_user.id, book_id),
    }), 200


@wishlist_bp.post("")
@require_auth
@require_permission("MANAGE_OWN_CART")
def add_to_wishlist_route():
    try:
        data = request.get_json(silent=True) or {}
        book_id = parse_int(data.get("book_id"), "book_id", minimum=1)
        item = wishlist_service.add_to_wishlist(g.current_user.id, book_id)
        return jsonify({"item": item.to_dict()}), 201

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add to wishlist")
        return jsonify({"error": "Internal server error"}), 500


@wishlist_bp.post("/<int:book_id>/move-to-cart")
@require_auth
@require_permission("MANAGE_OWN_CART")
def move_to_cart_route(book_id: int):
    try:
        data = request.get_json(silent=True) or {}
        quantity = enforce_rules_cart_quantity(data.get("quantity", 1))
        item = wishlist_service.move_to_cart(g.current_user.id, book_id, quantity)
        return jsonify({"item": item.to_dict()}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to move wishlist item to cart")
        return jsonify({"error": "Internal server error"}), 500


@wishlist_bp.delete("/<int:book_id>")
@require_auth
@require_permission("MANAGE_OWN_CART")
def remove_from_wishlist_route(book_id: int):
    try:
        wishlist_service.remove_from_wishlist(g.current_user.id, book_id)
        return jsonify({"message": "Item removed"}), 200
    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code


@wishlist_bp.delete("")
@require_auth
@require_permission("MANAGE_OWN_CART")
def clear_wishlist_route():
    removed = wishlist_service.clear_wishlist(g.current_user.id)
    return jsonify({"message": "Wishlist cleared", "removed": removed}), 200
