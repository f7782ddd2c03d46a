# Overview: Flask API routes for the authenticated user's cart.

from flask import Blueprint, request, jsonify, current_app, g

from ..services import cart_service
from ..services.errors import BookstoreError
from ..decorators import require_auth, require_permission
from ..validation import parse_int, enforce_rules_cart_quantity


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


@cart_bp.get("")
@require_auth
@require_permission("MANAGE_OWN_CART")
def get_cart_route():
    return jsonify(cart_service.get_cart(g.current_user.id)), 200


@cart_bp.get("/count")
@require_auth
@require_permission("MANAGE_OWN_CART")
def cart_count_route():
    return jsonify({"count": cart_service.get_cart_count(g.current_user.id)}), 200


@cart_bp.post("")
@require_auth
@require_permission("MANAGE_OWN_CART")
def add_to_cart_route():
    """Add a book (merging quantities). Body: {"book_id": int, "quantity": int = 1}"""
    try:
        data = request.get_json(silent=True) or {}
        book_id = parse_int(data.get("book_id"), "book_id", minimum=1)
        quantity = enforce_rules_cart_quantity(data.get("quantity", 1))

        item = cart_service.add_to_cart(g.current_user.id, book_id, quantity)
        return jsonify({"item": item.to_dict()}), 201

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add to cart")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.put("/<int:book_id>")
@require_auth
@require_permission("MANAGE_OWN_CART")
def update_cart_item_route(book_id: int):
    try:
        data = request.get_json(silent=True) or {}
        quantity = enforce_rules_cart_quantity(data.get("quantity"))

        item = cart_service.update_cart_item(g.current_user.id, book_id, quantity)
        return jsonify({"item": item.to_dict()}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("/<int:book_id>")
@require_auth
@require_permission("MANAGE_OWN_CART")
def remove_from_cart_route(book_id: int):
    try:
        cart_service.remove_from_cart(g.current_user.id, book_id)
        return jsonify({"message": "Item removed"}), 200
    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code


@cart_bp.delete("")
@require_auth
@require_permission("MANAGE_OWN_CART")
def clear_cart_route():
    removed = cart_service.clear_cart(g.current_user.id)
    return jsonify({"message": "Cart cleared", "removed": removed}), 200
