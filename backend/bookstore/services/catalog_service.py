# Overview: Service-layer operations for the catalog; books and categories.

from __future__ import annotations

from sqlalchemy import or_, func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Book, CartItem, Category, InventoryLog, OrderItem
from ..models.catalog import BOOK_STATUSES, BOOK_STATUS_AVAILABLE, BOOK_STATUS_OUT_OF_STOCK
from ..models.inventory import REASON_INITIAL_STOCK
from bookstore.time_utils import utcnow
from .concurrency import run_with_retry
from .errors import ConflictError, DuplicateError, NotFoundError, ValidationError
from .inventory_service import _apply_stock_change


BOOK_SORT_COLUMNS = {
    "title": Book.title,
    "price": Book.price_cents,
    "author": Book.author,
    "date": Book.created_at,
}


# =============================================================================
# CATEGORIES
# =============================================================================

def list_categories(*, active_only: bool = False) -> list[Category]:
    q = db.session.query(Category)
    if active_only:
        q = q.filter(Category.is_active.is_(True))
    return q.order_by(Category.name.asc()).all()


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category", category_id)
    return category


def _ensure_category_name_free(name: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Category).filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    if q.first():
        raise DuplicateError("Category name already exists", details={"name": name})


def create_category(name: str, description: str | None = None, is_active: bool = True) -> Category:
    _ensure_category_name_free(name)
    category = Category(name=name, description=description, is_active=is_active, created_at=utcnow())
    db.session.add(category)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateError("Category name already exists", details={"name": name})
    return category


def update_category(category_id: int, patch: dict) -> Category:
    category = get_category(category_id)
    if "name" in patch:
        _ensure_category_name_free(patch["name"], exclude_id=category.id)
    for key, value in patch.items():
        setattr(category, key, value)
    category.updated_at = utcnow()
    db.session.commit()
    return category


def toggle_category(category_id: int) -> Category:
    category = get_category(category_id)
    category.is_active = not category.is_active
    category.updated_at = utcnow()
    db.session.commit()
    return category


def delete_category(category_id: int) -> None:
    """Refused while any book still references the category."""
    category = get_category(category_id)
    book_count = db.session.query(func.count(Book.id)).filter(Book.category_id == category_id).scalar()
    if book_count:
        raise ConflictError(
            "Cannot delete category that still has books",
            details={"category_id": category_id, "book_count": int(book_count)},
        )
    db.session.delete(category)
    db.session.commit()


# =============================================================================
# BOOKS
# =============================================================================

def search_books(
    *,
    search: str | None = None,
    category_id: int | None = None,
    min_price_cents: int | None = None,
    max_price_cents: int | None = None,
    status: str | None = None,
    sort_by: str | None = None,
    sort_descending: bool = False,
) -> list[Book]:
    """
    Catalog search. Text matches title, author or ISBN (case-insensitive).

    Unknown sort keys fall back to title.
    """
    q = db.session.query(Book)

    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        q = q.filter(or_(
            func.lower(Book.title).like(pattern),
            func.lower(Book.author).like(pattern),
            func.lower(Book.isbn).like(pattern),
        ))
    if category_id is not None:
        q = q.filter(Book.category_id == category_id)
    if min_price_cents is not None:
        q = q.filter(Book.price_cents >= min_price_cents)
    if max_price_cents is not None:
        q = q.filter(Book.price_cents <= max_price_cents)
    if status:
        if status not in BOOK_STATUSES:
            raise ValidationError(f"Invalid book status '{status}'", details={"status": status})
        q = q.filter(Book.status == status)

    column = BOOK_SORT_COLUMNS.get((sort_by or "").lower(), Book.title)
    order = column.desc() if sort_descending else column.asc()
    return q.order_by(order, Book.id.asc()).all()


def get_book(book_id: int) -> Book:
    book = db.session.get(Book, book_id)
    if book is None:
        raise NotFoundError("Book", book_id)
    return book


def _ensure_isbn_free(isbn: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Book).filter(Book.isbn == isbn)
    if exclude_id is not None:
        q = q.filter(Book.id != exclude_id)
    if q.first():
        raise DuplicateError("Book with this ISBN already exists", details={"isbn": isbn})


def create_book(patch: dict, actor_user_id: int) -> Book:
    """
    Create a book from a validated payload.

    Initial stock is not written to the counter directly: the book starts at
    zero and the initial quantity is applied through the inventory ledger
    (reason "Initial stock") in the same transaction.
    """
    data = dict(patch)
    initial_stock = data.pop("stock_quantity", 0) or 0
    requested_status = data.pop("status", BOOK_STATUS_AVAILABLE)

    def _op():
        get_category(data["category_id"])
        _ensure_isbn_free(data["isbn"])

        book = Book(stock_quantity=0, created_at=utcnow(), **data)
        # An AVAILABLE book with no stock is OUT_OF_STOCK until the ledger says otherwise
        book.status = BOOK_STATUS_OUT_OF_STOCK if requested_status == BOOK_STATUS_AVAILABLE else requested_status
        db.session.add(book)
        db.session.flush()

        if initial_stock > 0:
            _apply_stock_change(
                book=book,
                quantity_change=initial_stock,
                reason=REASON_INITIAL_STOCK,
                actor_user_id=actor_user_id,
            )

        db.session.commit()
        return book

    return run_with_retry(_op)


def _check_status_matches_stock(book: Book, status: str) -> None:
    # AVAILABLE and OUT_OF_STOCK follow the stock counter; only the other statuses are set by hand
    if status == BOOK_STATUS_AVAILABLE and book.stock_quantity == 0:
        raise ValidationError(
            "A book with no stock cannot be AVAILABLE; restock it through an inventory adjustment",
            details={"field": "status", "stock_quantity": book.stock_quantity},
        )
    if status == BOOK_STATUS_OUT_OF_STOCK and book.stock_quantity > 0:
        raise ValidationError(
            "A book with stock cannot be OUT_OF_STOCK; mark it DISCONTINUED to stop sales",
            details={"field": "status", "stock_quantity": book.stock_quantity},
        )


def update_book(book_id: int, patch: dict) -> Book:
    """Edit book master data. Stock is never edited here; use inventory adjustments."""
    if "stock_quantity" in patch:
        raise ValidationError(
            "stock_quantity cannot be edited directly; use an inventory adjustment",
            details={"field": "stock_quantity"},
        )

    def _op():
        book = get_book(book_id)
        if "category_id" in patch:
            get_category(patch["category_id"])
        if "isbn" in patch:
            _ensure_isbn_free(patch["isbn"], exclude_id=book.id)
        if "status" in patch:
            _check_status_matches_stock(book, patch["status"])

        for key, value in patch.items():
            setattr(book, key, value)
        book.updated_at = utcnow()
        db.session.commit()
        return book

    return run_with_retry(_op)


def delete_book(book_id: int) -> None:
    """
    Refused while the book sits in any cart, appears on any order, or has
    inventory history (ledger rows are never deleted). Such books should be
    marked DISCONTINUED instead.
    """
    book = get_book(book_id)

    if db.session.query(CartItem.id).filter(CartItem.book_id == book_id).first():
        raise ConflictError("Cannot delete book that is in customer carts", details={"book_id": book_id})
    if db.session.query(OrderItem.id).filter(OrderItem.book_id == book_id).first():
        raise ConflictError("Cannot delete book that has been ordered", details={"book_id": book_id})
    if db.session.query(InventoryLog.id).filter(InventoryLog.book_id == book_id).first():
        raise ConflictError(
            "Cannot delete book with inventory history; mark it DISCONTINUED instead",
            details={"book_id": book_id},
        )

    for item in list(book.wishlist_items):
        db.session.delete(item)
    db.session.delete(book)
    db.session.commit()
