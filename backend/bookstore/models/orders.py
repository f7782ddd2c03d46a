from __future__ import annotations

from ..extensions import db
from bookstore.time_utils import to_utc_z


ORDER_STATUS_PENDING = "PENDING"
ORDER_STATUS_PROCESSING = "PROCESSING"
ORDER_STATUS_PACKED = "PACKED"
ORDER_STATUS_SHIPPED = "SHIPPED"
ORDER_STATUS_DELIVERED = "DELIVERED"
ORDER_STATUS_CANCELLED = "CANCELLED"

PAYMENT_STATUS_PENDING = "PENDING"
PAYMENT_STATUS_COMPLETED = "COMPLETED"
PAYMENT_STATUS_FAILED = "FAILED"
PAYMENT_STATUS_REFUNDED = "REFUNDED"


class Order(db.Model):
    """
    Order document created at checkout.

    WHY: An order is a snapshot of the cart at purchase time. After creation
    only status and the lifecycle timestamps change; lines and totals never do.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_user_ordered", "user_id", "ordered_at"),
        db.Index("ix_orders_status_ordered", "status", "ordered_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable order number (e.g., "ORD-20261019-000042")
    order_number = db.Column(db.String(50), nullable=False, unique=True, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Sum of line totals at order time (cents)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PENDING, index=True)

    shipping_address = db.Column(db.String(500), nullable=False)
    shipping_phone = db.Column(db.String(20), nullable=False)
    note = db.Column(db.String(1000), nullable=True)

    # Lifecycle timestamps
    ordered_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    shipped_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )
    payment = db.relationship("Payment", backref="order", uselist=False, lazy=True)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def to_summary_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "user_email": self.user.email if self.user else None,
            "total_amount_cents": self.total_amount_cents,
            "status": self.status,
            "ordered_at": to_utc_z(self.ordered_at),
            "item_count": self.item_count,
            "payment_method": self.payment.method if self.payment else None,
            "payment_status": self.payment.status if self.payment else None,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "total_amount_cents": self.total_amount_cents,
            "status": self.status,
            "shipping_address": self.shipping_address,
            "shipping_phone": self.shipping_phone,
            "note": self.note,
            "ordered_at": to_utc_z(self.ordered_at),
            "shipped_at": to_utc_z(self.shipped_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
            "items": [item.to_dict() for item in self.items],
            "payment": self.payment.to_dict() if self.payment else None,
        }


class OrderItem(db.Model):
    """Price-at-order snapshot of one cart line."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_at_order_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    book = db.relationship("Book")

    def to_dict(self) -> dict:
        book = self.book
        return {
            "id": self.id,
            "order_id": self.order_id,
            "book_id": self.book_id,
            "book_title": book.title if book else "",
            "book_author": book.author if book else "",
            "book_image_url": book.image_url if book else None,
            "quantity": self.quantity,
            "price_at_order_cents": self.price_at_order_cents,
            "line_total_cents": self.line_total_cents,
        }


class Payment(db.Model):
    """
    Payment record for an order.

    WHY: Captures how the customer intends to pay and where that payment
    stands. This is a passive status holder; no gateway is called.

    STATUS FLOW:
    - PENDING -> COMPLETED (staff confirms the money arrived)
    - PENDING -> FAILED (declined, or the order was cancelled before payment)
    - COMPLETED -> REFUNDED (order cancelled after payment)
    """
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, unique=True, index=True)

    method = db.Column(db.String(50), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PENDING, index=True)

    transaction_id = db.Column(db.String(100), nullable=True)
    failure_reason = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "method": self.method,
            "amount_cents": self.amount_cents,
            "status": self.status,
            "transaction_id": self.transaction_id,
            "failure_reason": self.failure_reason,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderSequence(db.Model):
    """
    Per-day counter backing order numbers.

    next_number is the number the NEXT order of that day will receive.
    Incremented with a single UPDATE so concurrent checkouts never share a value.
    """
    __tablename__ = "order_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sequence_date = db.Column(db.String(8), nullable=False, unique=True)  # YYYYMMDD
    next_number = db.Column(db.Integer, nullable=False, default=1)
