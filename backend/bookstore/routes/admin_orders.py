# Overview: Flask API routes for staff order fulfillment, payments and reports.

from flask import Blueprint, request, jsonify, current_app, g

from ..services import order_service, payment_service, dashboard_service
from ..services.errors import BookstoreError
from ..decorators import require_auth, require_permission
from ..validation import parse_int


admin_orders_bp = Blueprint("admin_orders", __name__, url_prefix="/api/admin")


@admin_orders_bp.get("/orders")
@require_auth
@require_permission("VIEW_ALL_ORDERS")
def list_orders_route():
    """
    Query: status, user_id, start_date, end_date (ISO-8601), search, limit
    """
    try:
        user_id = request.args.get("user_id")
        orders = order_service.list_all_orders(
            status=request.args.get("status") or None,
            user_id=parse_int(user_id, "user_id", minimum=1) if user_id else None,
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            search=request.args.get("search"),
            limit=parse_int(request.args.get("limit", "200"), "limit", minimum=1, maximum=1000),
        )
        return jsonify({"orders": [o.to_summary_dict() for o in orders], "count": len(orders)}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@admin_orders_bp.get("/orders/statistics")
@require_auth
@require_permission("VIEW_REPORTS")
def order_statistics_route():
    return jsonify(order_service.get_order_statistics()), 200


@admin_orders_bp.get("/dashboard")
@require_auth
@require_permission("VIEW_REPORTS")
def dashboard_route():
    return jsonify(dashboard_service.get_dashboard_statistics()), 200


@admin_orders_bp.get("/orders/<int:order_id>")
@require_auth
@require_permission("VIEW_ALL_ORDERS")
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
        return jsonify({"order": {**order.to_dict(), **order.to_summary_dict()}}), 200
    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code


@admin_orders_bp.put("/orders/<int:order_id>/status")
@require_auth
@require_permission("UPDATE_ORDER_STATUS")
def update_order_status_route(order_id: int):
    """Body: {"status": "PROCESSING" | "PACKED" | "SHIPPED" | "DELIVERED" | "CANCELLED"}"""
    try:
        data = request.get_json(silent=True) or {}
        new_status = data.get("status")
        if not isinstance(new_status, str) or not new_status.strip():
            return jsonify({"error": "status required", "code": "VALIDATION_ERROR", "details": {}}), 400

        order = order_service.update_order_status(order_id, new_status.strip().upper(), g.current_user)
        return jsonify({"order": order.to_dict()}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@admin_orders_bp.post("/orders/<int:order_id>/cancel")
@require_auth
@require_permission("CANCEL_ANY_ORDER")
def admin_cancel_order_route(order_id: int):
    try:
        order = order_service.admin_cancel_order(order_id, g.current_user)
        return jsonify({"order": order.to_dict()}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500


@admin_orders_bp.post("/orders/<int:order_id>/payment/complete")
@require_auth
@require_permission("MANAGE_PAYMENTS")
def complete_payment_route(order_id: int):
    """Body (optional): {"transaction_id": str}; one is generated when absent."""
    try:
        data = request.get_json(silent=True) or {}
        transaction_id = data.get("transaction_id")
        if transaction_id is not None and (not isinstance(transaction_id, str) or len(transaction_id) > 100):
            return jsonify({"error": "transaction_id must be a string of at most 100 characters",
                            "code": "VALIDATION_ERROR", "details": {}}), 400

        payment = payment_service.complete_payment(order_id, transaction_id)
        return jsonify({"payment": payment.to_dict()}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to complete payment")
        return jsonify({"error": "Internal server error"}), 500


@admin_orders_bp.post("/orders/<int:order_id>/payment/fail")
@require_auth
@require_permission("MANAGE_PAYMENTS")
def fail_payment_route(order_id: int):
    try:
        data = request.get_json(silent=True) or {}
        reason = data.get("reason")
        if not isinstance(reason, str) or not reason.strip():
            return jsonify({"error": "reason required", "code": "VALIDATION_ERROR", "details": {}}), 400

        payment = payment_service.fail_payment(order_id, reason[:500])
        return jsonify({"payment": payment.to_dict()}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to fail payment")
        return jsonify({"error": "Internal server error"}), 500
