# Overview: Service-layer order workflow; checkout, status transitions and cancellation.

"""
Order Workflow Engine

WHY: An order is the one place where cart, stock, ledger and payment must
change together. Every operation here is a single unit of work: either all
of its rows commit or none do.

CHECKOUT (create_order):
    1. Take the write lock (BEGIN IMMEDIATE on SQLite, FOR UPDATE elsewhere)
    2. Load cart lines joined with live book rows
    3. Reject empty carts and any line the live stock cannot cover
    4. Allocate the order number, create the Order (PENDING)
    5. Per line: decrement stock through the ledger, snapshot the price
    6. Create the PENDING Payment, clear the cart, commit

CANCELLATION (cancel_order / admin_cancel_order / update_order_status):
    Stock is restored through the ledger with new positive rows, the payment
    is settled, cancelled_at is set. Only PENDING and PROCESSING orders can
    be cancelled.
"""

from __future__ import annotations

from datetime import timedelta

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Book, Order, OrderItem, Payment, User
from ..models.inventory import REASON_ORDER_PLACED, REASON_ORDER_CANCELLED
from ..models.orders import (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_SHIPPED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_CANCELLED,
    PAYMENT_STATUS_COMPLETED,
)
from bookstore.time_utils import utcnow, parse_iso_datetime
from . import permission_service
from .cart_service import build_checkout_lines, _delete_cart_items
from .concurrency import begin_immediate, run_with_retry
from .document_service import next_order_number
from .errors import (
    EmptyCartError,
    ForbiddenError,
    InsufficientStockError,
    NegativeStockError,
    NotCancellableError,
    NotFoundError,
    ValidationError,
)
from .inventory_service import _apply_stock_change, _get_book_locked
from .order_lifecycle_service import (
    VALID_ORDER_STATUSES,
    assert_transition,
    is_cancellable,
    validate_status,
)
from .payment_service import (
    _get_order_locked,
    _get_payment_locked,
    record_payment,
    settle_on_cancel,
    validate_payment_method,
)


def _require_text(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", details={"field": field})
    return value.strip()


# =============================================================================
# CHECKOUT
# =============================================================================

def create_order(
    user_id: int,
    shipping_address: str,
    shipping_phone: str,
    note: str | None = None,
    payment_method: str = "CASH_ON_DELIVERY",
) -> Order:
    """
    Convert the user's cart into a PENDING order.

    Raises:
        EmptyCartError: the cart has no lines
        InsufficientStockError: any line exceeds live stock (nothing is changed)
        NotFoundError: the user does not exist
        ValidationError: missing shipping data or unknown payment method
        ConflictError: lost a concurrent race on every retry
    """
    shipping_address = _require_text(shipping_address, "shipping_address")
    shipping_phone = _require_text(shipping_phone, "shipping_phone")
    validate_payment_method(payment_method)

    def _op():
        begin_immediate()

        if db.session.get(User, user_id) is None:
            raise NotFoundError("User", user_id)

        lines = build_checkout_lines(user_id, lock=True)
        if not lines:
            raise EmptyCartError()

        # Validate every line before touching any stock
        for line in lines:
            if not line.is_satisfiable:
                raise InsufficientStockError(line.book_id, line.quantity, line.available, line.title)

        now = utcnow()
        order = Order(
            order_number=next_order_number(now),
            user_id=user_id,
            total_amount_cents=sum(line.line_total_cents for line in lines),
            status=ORDER_STATUS_PENDING,
            shipping_address=shipping_address,
            shipping_phone=shipping_phone,
            note=note.strip() if isinstance(note, str) and note.strip() else None,
            ordered_at=now,
        )
        db.session.add(order)
        db.session.flush()

        for line in lines:
            book = db.session.get(Book, line.book_id)
            try:
                _apply_stock_change(
                    book=book,
                    quantity_change=-line.quantity,
                    reason=REASON_ORDER_PLACED,
                    actor_user_id=user_id,
                    notes=f"Order {order.order_number}",
                    order_id=order.id,
                )
            except NegativeStockError as exc:
                raise InsufficientStockError(
                    line.book_id, line.quantity, exc.details.get("current", 0), line.title
                ) from exc

            db.session.add(OrderItem(
                order_id=order.id,
                book_id=line.book_id,
                quantity=line.quantity,
                price_at_order_cents=line.unit_price_cents,
                line_total_cents=line.line_total_cents,
            ))

        record_payment(order, payment_method)
        _delete_cart_items(user_id)

        db.session.commit()
        current_app.logger.info(
            "order placed order_number=%s user_id=%s lines=%s total_cents=%s",
            order.order_number, user_id, len(lines), order.total_amount_cents,
        )
        return order

    return run_with_retry(_op)


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

def _restore_stock(order: Order, actor_user_id: int) -> None:
    for item in sorted(order.items, key=lambda i: i.book_id):
        book = _get_book_locked(item.book_id)
        _apply_stock_change(
            book=book,
            quantity_change=item.quantity,
            reason=REASON_ORDER_CANCELLED,
            actor_user_id=actor_user_id,
            notes=f"Order {order.order_number}",
            order_id=order.id,
        )


def _cancel_locked(order: Order, actor_user_id: int) -> None:
    now = utcnow()
    # Lock order: order, payment, books. complete_payment takes the first two the same way.
    settle_on_cancel(_get_payment_locked(order.id))
    _restore_stock(order, actor_user_id)
    order.status = ORDER_STATUS_CANCELLED
    order.cancelled_at = now
    order.updated_at = now


def update_order_status(order_id: int, new_status: str, actor: User) -> Order:
    """
    Move an order one step through its lifecycle.

    Requires the UPDATE_ORDER_STATUS capability. SHIPPED sets shipped_at,
    DELIVERED sets delivered_at, CANCELLED restores stock and settles payment.

    Raises:
        ForbiddenError: actor's role lacks the capability
        ValidationError: new_status is not an order status
        InvalidTransitionError: the lifecycle does not allow the change
        NotFoundError: order does not exist
    """
    permission_service.require_capability(actor.role, "UPDATE_ORDER_STATUS", user_id=actor.id)
    validate_status(new_status)
    actor_id = actor.id

    def _op():
        begin_immediate()
        order = _get_order_locked(order_id)
        old_status = order.status
        assert_transition(old_status, new_status)

        now = utcnow()
        if new_status == ORDER_STATUS_CANCELLED:
            _cancel_locked(order, actor_id)
        else:
            if new_status == ORDER_STATUS_SHIPPED:
                order.shipped_at = now
            elif new_status == ORDER_STATUS_DELIVERED:
                order.delivered_at = now
            order.status = new_status
            order.updated_at = now

        db.session.commit()
        current_app.logger.info(
            "order status changed order_number=%s %s -> %s by user_id=%s",
            order.order_number, old_status, new_status, actor_id,
        )
        return order

    return run_with_retry(_op)


def cancel_order(user_id: int, order_id: int) -> Order:
    """
    Customer cancellation of their own order.

    Raises:
        NotFoundError: order does not exist
        ForbiddenError: order belongs to someone else
        NotCancellableError: order is past PROCESSING or already final
    """
    def _op():
        begin_immediate()
        order = _get_order_locked(order_id)
        if order.user_id != user_id:
            raise ForbiddenError(
                "Order belongs to another user",
                details={"order_id": order_id},
            )
        if not is_cancellable(order.status):
            raise NotCancellableError(order.id, order.status)

        _cancel_locked(order, user_id)
        db.session.commit()
        current_app.logger.info(
            "order cancelled by customer order_number=%s user_id=%s", order.order_number, user_id
        )
        return order

    return run_with_retry(_op)


def admin_cancel_order(order_id: int, actor: User) -> Order:
    """Staff/admin cancellation; same rules as customer cancellation minus ownership."""
    permission_service.require_capability(actor.role, "CANCEL_ANY_ORDER", user_id=actor.id)
    actor_id = actor.id

    def _op():
        begin_immediate()
        order = _get_order_locked(order_id)
        if not is_cancellable(order.status):
            raise NotCancellableError(order.id, order.status)

        _cancel_locked(order, actor_id)
        db.session.commit()
        current_app.logger.info(
            "order cancelled by staff order_number=%s actor_id=%s", order.order_number, actor_id
        )
        return order

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def list_user_orders(user_id: int) -> list[Order]:
    return (
        db.session.query(Order)
        .options(joinedload(Order.items), joinedload(Order.payment))
        .filter(Order.user_id == user_id)
        .order_by(Order.ordered_at.desc(), Order.id.desc())
        .all()
    )


def get_user_order(user_id: int, order_id: int) -> Order:
    """Customers only see their own orders; someone else's order is reported as missing."""
    order = db.session.query(Order).filter_by(id=order_id, user_id=user_id).first()
    if order is None:
        raise NotFoundError("Order", order_id)
    return order


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order", order_id)
    return order


def list_all_orders(
    *,
    status: str | None = None,
    user_id: int | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    search: str | None = None,
    limit: int = 200,
) -> list[Order]:
    """
    Staff order listing, newest first.

    search matches order number, username or email (case-insensitive).
    A bare YYYY-MM-DD end_date includes that whole day.
    """
    q = db.session.query(Order).join(User, User.id == Order.user_id)

    if status:
        validate_status(status)
        q = q.filter(Order.status == status)
    if user_id is not None:
        q = q.filter(Order.user_id == user_id)

    try:
        start_dt = parse_iso_datetime(start_date)
        end_dt = parse_iso_datetime(end_date)
    except ValueError:
        raise ValidationError("start_date/end_date must be ISO-8601")

    if start_dt:
        q = q.filter(Order.ordered_at >= start_dt)
    if end_dt:
        if end_date and len(end_date.strip()) == 10:
            q = q.filter(Order.ordered_at < end_dt + timedelta(days=1))
        else:
            q = q.filter(Order.ordered_at <= end_dt)

    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        q = q.filter(or_(
            func.lower(Order.order_number).like(pattern),
            func.lower(User.username).like(pattern),
            func.lower(User.email).like(pattern),
        ))

    return q.order_by(Order.ordered_at.desc(), Order.id.desc()).limit(limit).all()


def get_order_statistics() -> dict:
    """Order counts per status and revenue from completed payments."""
    counts = dict(
        db.session.query(Order.status, func.count(Order.id))
        .group_by(Order.status)
        .all()
    )
    by_status = {status: int(counts.get(status, 0)) for status in sorted(VALID_ORDER_STATUSES)}

    revenue = (
        db.session.query(func.coalesce(func.sum(Payment.amount_cents), 0))
        .filter(Payment.status == PAYMENT_STATUS_COMPLETED)
        .scalar()
    )

    return {
        "total_orders": sum(by_status.values()),
        "by_status": by_status,
        "total_revenue_cents": int(revenue or 0),
    }
