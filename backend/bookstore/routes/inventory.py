# Overview: Flask API routes for inventory adjustments, ledger history and low-stock reports.

from flask import Blueprint, request, jsonify, current_app, g

from ..services import inventory_service
from ..services.errors import BookstoreError
from ..decorators import require_auth, require_permission
from ..validation import parse_int, enforce_rules_stock_adjustment


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.put("/<int:book_id>")
@require_auth
@require_permission("ADJUST_INVENTORY")
def adjust_stock_route(book_id: int):
    """
    Apply a signed stock change through the inventory ledger.

    Body: {"quantity_change": int (non-zero), "reason": str, "notes": str?}
    Returns 409 NEGATIVE_STOCK if the result would be below zero.
    """
    try:
        data = enforce_rules_stock_adjustment(request.get_json(silent=True) or {})
        log = inventory_service.adjust_stock(
            book_id=book_id,
            quantity_change=data["quantity_change"],
            reason=data["reason"],
            actor_user_id=g.current_user.id,
            notes=data["notes"],
        )
        return jsonify({"log": log.to_dict(), "book": log.book.to_dict()}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/logs")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_logs_route():
    """Query: book_id, user_id, start_date, end_date, limit"""
    try:
        book_id = request.args.get("book_id")
        user_id = request.args.get("user_id")
        logs = inventory_service.list_inventory_logs(
            book_id=parse_int(book_id, "book_id", minimum=1) if book_id else None,
            user_id=parse_int(user_id, "user_id", minimum=1) if user_id else None,
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            limit=parse_int(request.args.get("limit", "200"), "limit", minimum=1, maximum=1000),
        )
        return jsonify({"logs": [log.to_dict() for log in logs]}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list inventory logs")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def low_stock_route():
    try:
        raw = request.args.get("threshold")
        threshold = parse_int(raw, "threshold", minimum=0) if raw else None
        books = inventory_service.list_low_stock_books(threshold)
        return jsonify({
            "threshold": threshold if threshold is not None else current_app.config["LOW_STOCK_THRESHOLD"],
            "books": [b.to_dict() for b in books],
        }), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
