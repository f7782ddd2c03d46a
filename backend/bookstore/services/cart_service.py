# Overview: Service-layer operations for the per-user shopping cart and checkout conversion.

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func

from ..extensions import db
from ..models import Book, CartItem
from ..models.cart import CART_MIN_QUANTITY, CART_MAX_QUANTITY
from ..models.catalog import BOOK_STATUS_DISCONTINUED
from bookstore.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .errors import InsufficientStockError, NotFoundError, ValidationError


@dataclass(frozen=True)
class CheckoutLine:
    """One cart line joined with the live book row at conversion time."""
    book_id: int
    title: str
    quantity: int
    unit_price_cents: int
    available: int

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    @property
    def is_satisfiable(self) -> bool:
        return self.available >= self.quantity


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")
    if quantity < CART_MIN_QUANTITY or quantity > CART_MAX_QUANTITY:
        raise ValidationError(
            f"quantity must be between {CART_MIN_QUANTITY} and {CART_MAX_QUANTITY}",
            details={"quantity": quantity},
        )
    return quantity


def _get_book(book_id: int) -> Book:
    book = db.session.get(Book, book_id)
    if book is None:
        raise NotFoundError("Book", book_id)
    return book


def _get_cart_item(user_id: int, book_id: int) -> CartItem:
    item = db.session.query(CartItem).filter_by(user_id=user_id, book_id=book_id).first()
    if item is None:
        raise NotFoundError("CartItem", book_id)
    return item


def get_cart(user_id: int) -> dict:
    items = (
        db.session.query(CartItem)
        .filter_by(user_id=user_id)
        .order_by(CartItem.added_at.desc(), CartItem.id.desc())
        .all()
    )
    rows = [item.to_dict() for item in items]
    return {
        "items": rows,
        "total_items": sum(row["quantity"] for row in rows),
        "total_amount_cents": sum(row["subtotal_cents"] for row in rows),
    }


def get_cart_count(user_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(CartItem.quantity), 0))
        .filter(CartItem.user_id == user_id)
        .scalar()
    )
    return int(total or 0)


def add_to_cart(user_id: int, book_id: int, quantity: int = 1) -> CartItem:
    """
    Add a book to the cart, merging with an existing line for the same book.

    Stock is checked against the merged quantity. This is advisory only;
    the authoritative check happens again at checkout.
    """
    _validate_quantity(quantity)

    def _op():
        book = _get_book(book_id)
        if book.status == BOOK_STATUS_DISCONTINUED:
            raise ValidationError("Book is discontinued", details={"book_id": book_id})

        item = db.session.query(CartItem).filter_by(user_id=user_id, book_id=book_id).first()
        new_quantity = quantity + (item.quantity if item else 0)
        if new_quantity > CART_MAX_QUANTITY:
            raise ValidationError(
                f"Cart quantity for a book cannot exceed {CART_MAX_QUANTITY}",
                details={"book_id": book_id, "quantity": new_quantity},
            )
        if new_quantity > book.stock_quantity:
            raise InsufficientStockError(book.id, new_quantity, book.stock_quantity, book.title)

        if item is None:
            item = CartItem(user_id=user_id, book_id=book_id, quantity=new_quantity, added_at=utcnow())
            db.session.add(item)
        else:
            item.quantity = new_quantity

        db.session.commit()
        return item

    return run_with_retry(_op)


def update_cart_item(user_id: int, book_id: int, quantity: int) -> CartItem:
    """Set the quantity of an existing line (not additive)."""
    _validate_quantity(quantity)

    def _op():
        item = _get_cart_item(user_id, book_id)
        if quantity > item.book.stock_quantity:
            raise InsufficientStockError(book_id, quantity, item.book.stock_quantity, item.book.title)
        item.quantity = quantity
        db.session.commit()
        return item

    return run_with_retry(_op)


def remove_from_cart(user_id: int, book_id: int) -> None:
    def _op():
        item = _get_cart_item(user_id, book_id)
        db.session.delete(item)
        db.session.commit()

    return run_with_retry(_op)


def _delete_cart_items(user_id: int) -> int:
    return (
        db.session.query(CartItem)
        .filter(CartItem.user_id == user_id)
        .delete(synchronize_session=False)
    )


def clear_cart(user_id: int) -> int:
    """Delete every line of the user's cart. Returns the number of lines removed."""
    def _op():
        removed = _delete_cart_items(user_id)
        db.session.commit()
        return removed

    return run_with_retry(_op)


def build_checkout_lines(user_id: int, *, lock: bool = False) -> list[CheckoutLine]:
    """
    Load the cart joined with live Book rows.

    With lock=True the book rows are selected FOR UPDATE so stock cannot move
    between this read and the decrement that follows in the same transaction.
    Lines are ordered by book id so concurrent checkouts lock in the same order.
    """
    q = (
        db.session.query(CartItem, Book)
        .join(Book, Book.id == CartItem.book_id)
        .filter(CartItem.user_id == user_id)
        .order_by(Book.id.asc())
    )
    if lock:
        q = lock_for_update(q).populate_existing()

    return [
        CheckoutLine(
            book_id=book.id,
            title=book.title,
            quantity=item.quantity,
            unit_price_cents=book.price_cents,
            # Discontinued books stay in carts but can no longer be bought
            available=0 if book.status == BOOK_STATUS_DISCONTINUED else book.stock_quantity,
        )
        for item, book in q.all()
    ]
