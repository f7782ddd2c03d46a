from __future__ import annotations

from ..extensions import db
from bookstore.time_utils import to_utc_z


CART_MIN_QUANTITY = 1
CART_MAX_QUANTITY = 100


class CartItem(db.Model):
    """A pending (user, book, quantity) selection. Deleted on checkout."""
    __tablename__ = "cart_items"
    __table_args__ = (
        # A user holds at most one line per book; re-adding merges quantities
        db.UniqueConstraint("user_id", "book_id", name="uq_cart_items_user_book"),
        db.CheckConstraint(
            f"quantity >= {CART_MIN_QUANTITY} AND quantity <= {CART_MAX_QUANTITY}",
            name="ck_cart_items_quantity_range",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    added_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("cart_items", lazy=True))
    book = db.relationship("Book", backref=db.backref("cart_items", lazy=True))

    def to_dict(self) -> dict:
        book = self.book
        price = book.price_cents if book else 0
        return {
            "id": self.id,
            "user_id": self.user_id,
            "book_id": self.book_id,
            "book_title": book.title if book else "",
            "book_author": book.author if book else "",
            "book_image_url": book.image_url if book else None,
            "book_price_cents": price,
            "quantity": self.quantity,
            "subtotal_cents": price * self.quantity,
            "stock_quantity": book.stock_quantity if book else 0,
            "added_at": to_utc_z(self.added_at),
        }


class WishlistItem(db.Model):
    __tablename__ = "wishlist_items"
    __table_args__ = (
        db.UniqueConstraint("user_id", "book_id", name="uq_wishlist_items_user_book"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)

    added_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("wishlist_items", lazy=True))
    book = db.relationship("Book", backref=db.backref("wishlist_items", lazy=True))

    def to_dict(self) -> dict:
        book = self.book
        return {
            "id": self.id,
            "user_id": self.user_id,
            "book_id": self.book_id,
            "book_title": book.title if book else "",
            "book_author": book.author if book else "",
            "book_image_url": book.image_url if book else None,
            "book_price_cents": book.price_cents if book else 0,
            "stock_quantity": book.stock_quantity if book else 0,
            "book_status": book.status if book else "",
            "added_at": to_utc_z(self.added_at),
        }
