# Overview: Flask API routes for the book catalog; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..models import Book
from ..services import catalog_service
from ..services.errors import BookstoreError
from ..decorators import require_auth, require_permission
from ..validation import (
    validate_payload,
    parse_int,
    enforce_rules_book,
    BOOK_CREATE_POLICY,
    BOOK_UPDATE_POLICY,
)


books_bp = Blueprint("books", __name__, url_prefix="/api/books")
admin_books_bp = Blueprint("admin_books", __name__, url_prefix="/api/admin/books")


def _optional_int(name: str):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return parse_int(raw, name, minimum=0)


@books_bp.get("")
def list_books_route():
    """
    Public catalog search.

    Query: search, category_id, min_price_cents, max_price_cents, status,
    sort_by (title|price|author|date), sort_descending (true|false)
    """
    try:
        books = catalog_service.search_books(
            search=request.args.get("search"),
            category_id=_optional_int("category_id"),
            min_price_cents=_optional_int("min_price_cents"),
            max_price_cents=_optional_int("max_price_cents"),
            status=request.args.get("status") or None,
            sort_by=request.args.get("sort_by"),
            sort_descending=request.args.get("sort_descending", "false").lower() == "true",
        )
        return jsonify({"books": [b.to_dict() for b in books], "count": len(books)}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list books")
        return jsonify({"error": "Internal server error"}), 500


@books_bp.get("/<int:book_id>")
def get_book_route(book_id: int):
    try:
        return jsonify({"book": catalog_service.get_book(book_id).to_dict()}), 200
    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code


@admin_books_bp.post("")
@require_auth
@require_permission("MANAGE_CATALOG")
def create_book_route():
    """
    Create a book. stock_quantity (optional) becomes an "Initial stock" ledger entry.

    Requires: MANAGE_CATALOG
    """
    try:
        patch = validate_payload(
            model=Book,
            payload=request.get_json(silent=True),
            policy=BOOK_CREATE_POLICY,
            partial=False,
        )
        enforce_rules_book(patch)
        book = catalog_service.create_book(patch, actor_user_id=g.current_user.id)
        return jsonify({"book": book.to_dict()}), 201

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create book")
        return jsonify({"error": "Internal server error"}), 500


@admin_books_bp.put("/<int:book_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def update_book_route(book_id: int):
    """Edit book master data. Stock changes go through PUT /api/inventory/<book_id>."""
    try:
        patch = validate_payload(
            model=Book,
            payload=request.get_json(silent=True),
            policy=BOOK_UPDATE_POLICY,
            partial=True,
        )
        enforce_rules_book(patch)
        book = catalog_service.update_book(book_id, patch)
        return jsonify({"book": book.to_dict()}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update book")
        return jsonify({"error": "Internal server error"}), 500


@admin_books_bp.delete("/<int:book_id>")
@require_auth
@require_permission("MANAGE_CATALOG")
def delete_book_route(book_id: int):
    try:
        catalog_service.delete_book(book_id)
        return jsonify({"message": "Book deleted"}), 200

    except BookstoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete book")
        return jsonify({"error": "Internal server error"}), 500
