# Overview: Flask API routes for customer orders; checkout, history and cancellation.

# backend/bookstore/routes/orders.py
"""Customer order routes with capability enforcement"""

from flask import Blueprint, request, jsonify, current_app, g

from ..models import Order
from ..services import order_service
from ..services.errors import BookstoreError
from ..services.payment_service import METHOD_CASH_ON_DELIVERY
from ..decorators import require_auth, require_permission
from ..validation import validate_payload, ORDER_CREATE_POLICY


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
@require_permission("PLACE_ORDER")
def create_order_route():
    """
    Check out the current cart.

    Body: shipping_address, shipping_phone, payment_method (default
    CASH_ON_DELIVERY), note (optional)

    Returns 201 with the order, 400 EMPTY_CART, 409 INSUFFICIENT_STOCK
    (nothing changed) or 409 CONFLICT (lost a concurrent race; retry).
    """
    try:
        patch = validate_payload(
            model=Order,
            payload=request.get_json(silent=True),
            policy=ORDER_CREATE_POLICY,
            partial=False,
        )
        order = order_service.create_order(
            user_id=g.current_user.id,
            shipping_address=patch["shipping_address"],
            shipping_phone=patch["shipping_phone"],
            note=patch.get("note"),
            payment_method=patch.get("payment_method", METHOD_CASH_ON_DELIVERY),
        )
        return jsonify({"order": order.to_dict()}), 201

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@require_auth
@require_permission("VIEW_OWN_ORDERS")
def list_my_orders_route():
    orders = order_service.list_user_orders(g.current_user.id)
    return jsonify({"orders": [o.to_summary_dict() for o in orders]}), 200


@orders_bp.get("/<int:order_id>")
@require_auth
@require_permission("VIEW_OWN_ORDERS")
def get_my_order_route(order_id: int):
    try:
        order = order_service.get_user_order(g.current_user.id, order_id)
        return jsonify({"order": order.to_dict()}), 200
    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
@require_permission("CANCEL_OWN_ORDER")
def cancel_my_order_route(order_id: int):
    """Cancel own order while PENDING or PROCESSING; restores stock."""
    try:
        order = order_service.cancel_order(g.current_user.id, order_id)
        return jsonify({"order": order.to_dict()}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500
