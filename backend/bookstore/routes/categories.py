# Overview: Flask API routes for book categories; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..models import Category
from ..services import catalog_service
from ..services.errors import BookstoreError
from ..decorators import require_auth, require_permission
from ..validation import validate_payload, CATEGORY_POLICY


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")
admin_categories_bp = Blueprint("admin_categories", __name__, url_prefix="/api/admin/categories")


@categories_bp.get("")
def list_categories_route():
    active_only = request.args.get("active_only", "false").lower() == "true"
    categories = catalog_service.list_categories(active_only=active_only)
    return jsonify({"categories": [c.to_dict() for c in categories]}), 200


@categories_bp.get("/<int:category_id>")
def get_category_route(category_id: int):
    try:
        return jsonify({"category": catalog_service.get_category(category_id).to_dict()}), 200
    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code


@admin_categories_bp.post("")
@require_auth
@require_permission("MANAGE_CATALOG")
def create_category_route():
    try:
        patch = validate_payload(
            model=Category,
            payload=request.get_json(silent=True),
            policy=CATEGORY_POLICY,
            partial=False,
        )
        category = catalog_service.create_category(**patch)
        return jsonify({"category": category.to_dict()}), 201

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500


@admin_categories_bp.put("/<int:category_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def update_category_route(category_id: int):
    try:
        patch = validate_payload(
            model=Category,
            payload=request.get_json(silent=True),
            policy=CATEGORY_POLICY,
            partial=True,
        )
        category = catalog_service.update_category(category_id, patch)
        return jsonify({"category": category.to_dict()}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update category")
        return jsonify({"error": "Internal server error"}), 500


@admin_categories_bp.post("/<int:category_id>/toggle")
@require_auth
@require_permission("MANAGE_CATALOG")
def toggle_category_route(category_id: int):
    try:
        category = catalog_service.toggle_category(category_id)
        return jsonify({"category": category.to_dict()}), 200
    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code


@admin_categories_bp.delete("/<int:category_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def delete_category_route(category_id: int):
    try:
        catalog_service.delete_category(category_id)
        return jsonify({"message": "Category deleted"}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return jsonify({"error": "Internal server error"}), 500
