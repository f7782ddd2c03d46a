# Overview: Service-layer operations for the per-user wishlist.

from __future__ import annotations

from ..extensions import db
from ..models import Book, WishlistItem
from bookstore.time_utils import utcnow
from .cart_service import add_to_cart
from .errors import DuplicateError, NotFoundError


def list_wishlist(user_id: int) -> list[WishlistItem]:
    return (
        db.session.query(WishlistItem)
        .filter_by(user_id=user_id)
        .order_by(WishlistItem.added_at.desc(), WishlistItem.id.desc())
        .all()
    )


def add_to_wishlist(user_id: int, book_id: int) -> WishlistItem:
    if db.session.get(Book, book_id) is None:
        raise NotFoundError("Book", book_id)

    if is_in_wishlist(user_id, book_id):
        raise DuplicateError("Book is already in your wishlist", details={"book_id": book_id})

    item = WishlistItem(user_id=user_id, book_id=book_id, added_at=utcnow())
    db.session.add(item)
    db.session.commit()
    return item


def _get_item(user_id: int, book_id: int) -> WishlistItem:
    item = db.session.query(WishlistItem).filter_by(user_id=user_id, book_id=book_id).first()
    if item is None:
        raise NotFoundError("WishlistItem", book_id)
    return item


def remove_from_wishlist(user_id: int, book_id: int) -> None:
    db.session.delete(_get_item(user_id, book_id))
    db.session.commit()


def is_in_wishlist(user_id: int, book_id: int) -> bool:
    return db.session.query(WishlistItem.id).filter_by(user_id=user_id, book_id=book_id).first() is not None


def clear_wishlist(user_id: int) -> int:
    removed = db.session.query(WishlistItem).filter_by(user_id=user_id).delete(synchronize_session=False)
    db.session.commit()
    return removed


def move_to_cart(user_id: int, book_id: int, quantity: int = 1):
    """
    Add a wishlisted book to the cart, then drop it from the wishlist.

    The wishlist entry is only removed once the cart accepted the book, so a
    stock failure leaves the wishlist untouched.
    """
    item = _get_item(user_id, book_id)
    cart_item = add_to_cart(user_id, book_id, quantity)
    db.session.delete(item)
    db.session.commit()
    return cart_item
