from __future__ import annotations

from ..extensions import db
from bookstore.time_utils import to_utc_z


REASON_ORDER_PLACED = "Order placed"
REASON_ORDER_CANCELLED = "Order cancelled"
REASON_INITIAL_STOCK = "Initial stock"


class InventoryLog(db.Model):
    """
    Append-only ledger of stock changes.

    IMMUTABLE: Rows are never updated or deleted. A correction is a new row.

    INVARIANT: For every book,
        books.stock_quantity == SUM(inventory_logs.quantity_change)
    because the initial stock of a new book is itself logged.
    """
    __tablename__ = "inventory_logs"
    __table_args__ = (
        db.Index("ix_inventory_logs_book_logged", "book_id", "logged_at"),
        db.Index("ix_inventory_logs_user_logged", "user_id", "logged_at"),
        db.CheckConstraint("quantity_after >= 0", name="ck_inventory_logs_after_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Signed delta; negative for order placement, positive for restock/cancellation
    quantity_change = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(200), nullable=False)
    notes = db.Column(db.String(500), nullable=True)

    # Set when the change was caused by an order placement or cancellation
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    logged_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    book = db.relationship("Book", backref=db.backref("inventory_logs", lazy=True))
    user = db.relationship("User", backref=db.backref("inventory_logs", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book_id": self.book_id,
            "book_title": self.book.title if self.book else "",
            "user_id": self.user_id,
            "username": self.user.username if self.user else "",
            "quantity_change": self.quantity_change,
            "quantity_after": self.quantity_after,
            "reason": self.reason,
            "notes": self.notes,
            "order_id": self.order_id,
            "logged_at": to_utc_z(self.logged_at),
        }
