# Overview: Service-layer operations for order payments; a passive status holder, no gateway.

"""
Payment Recording Service

WHY: Every order carries exactly one Payment describing how the customer
intends to pay and where that payment stands. Staff move it forward by hand
(money received, card declined); the order workflow settles it on cancellation.

STATUS FLOW:
    PENDING -> COMPLETED   complete_payment()
    PENDING -> FAILED      fail_payment(), or order cancelled before payment
    COMPLETED -> REFUNDED  order cancelled after payment
"""

from __future__ import annotations

import uuid

from flask import current_app

from ..extensions import db
from ..models import Order, Payment
from ..models.orders import (
    ORDER_STATUS_CANCELLED,
    PAYMENT_STATUS_PENDING,
    PAYMENT_STATUS_COMPLETED,
    PAYMENT_STATUS_FAILED,
    PAYMENT_STATUS_REFUNDED,
)
from bookstore.time_utils import utcnow
from .concurrency import begin_immediate, lock_for_update, run_with_retry
from .errors import BookstoreError, NotFoundError, ValidationError


class PaymentError(BookstoreError):
    """Raised when a payment is not in a state that allows the operation."""
    code = "PAYMENT_ERROR"
    status_code = 409


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH_ON_DELIVERY = "CASH_ON_DELIVERY"
METHOD_CREDIT_CARD = "CREDIT_CARD"
METHOD_DEBIT_CARD = "DEBIT_CARD"
METHOD_PAYPAL = "PAYPAL"
METHOD_BANK_TRANSFER = "BANK_TRANSFER"

VALID_PAYMENT_METHODS = [
    METHOD_CASH_ON_DELIVERY,
    METHOD_CREDIT_CARD,
    METHOD_DEBIT_CARD,
    METHOD_PAYPAL,
    METHOD_BANK_TRANSFER,
]

CANCELLED_PAYMENT_REASON = "Order cancelled"


def generate_transaction_id() -> str:
    """Mock gateway reference: TXN-YYYYMMDDHHMMSS-XXXXXXXX."""
    return f"TXN-{utcnow():%Y%m%d%H%M%S}-{uuid.uuid4().hex[:8].upper()}"


def validate_payment_method(method: str) -> None:
    if method not in VALID_PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method: {method}. Must be one of {VALID_PAYMENT_METHODS}",
            details={"payment_method": method},
        )


def record_payment(order: Order, method: str) -> Payment:
    """
    Create the PENDING payment for a freshly placed order.

    Runs inside the checkout transaction; flushes but does not commit.
    """
    validate_payment_method(method)
    payment = Payment(
        order_id=order.id,
        method=method,
        amount_cents=order.total_amount_cents,
        status=PAYMENT_STATUS_PENDING,
        created_at=utcnow(),
    )
    db.session.add(payment)
    db.session.flush()
    return payment


def settle_on_cancel(payment: Payment | None) -> None:
    """
    Bring a payment in line with a cancelled order (no commit).

    COMPLETED becomes REFUNDED; PENDING becomes FAILED. FAILED and REFUNDED
    are already final and stay as they are.
    """
    if payment is None:
        return
    now = utcnow()
    if payment.status == PAYMENT_STATUS_COMPLETED:
        payment.status = PAYMENT_STATUS_REFUNDED
        payment.updated_at = now
    elif payment.status == PAYMENT_STATUS_PENDING:
        payment.status = PAYMENT_STATUS_FAILED
        payment.failure_reason = CANCELLED_PAYMENT_REASON
        payment.updated_at = now


def _get_order_locked(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).populate_existing().first()
    if order is None:
        raise NotFoundError("Order", order_id)
    return order


def _get_payment_locked(order_id: int) -> Payment:
    """Lock an order's payment row. Callers lock the order row first."""
    payment = (
        lock_for_update(db.session.query(Payment).filter_by(order_id=order_id))
        .populate_existing()
        .first()
    )
    if payment is None:
        raise NotFoundError("Payment", order_id)
    return payment


def complete_payment(order_id: int, transaction_id: str | None = None) -> Payment:
    """
    Mark an order's payment as received (PENDING -> COMPLETED).

    A transaction id is generated when the caller has none.
    """
    def _op():
        begin_immediate()
        order = _get_order_locked(order_id)
        payment = _get_payment_locked(order_id)
        if order.status == ORDER_STATUS_CANCELLED:
            raise PaymentError(
                "Cannot complete payment for a cancelled order",
                details={"order_id": order_id},
            )
        if payment.status != PAYMENT_STATUS_PENDING:
            raise PaymentError(
                f"Cannot complete payment with status {payment.status}",
                details={"order_id": order_id, "status": payment.status},
            )

        now = utcnow()
        payment.status = PAYMENT_STATUS_COMPLETED
        payment.transaction_id = transaction_id or generate_transaction_id()
        payment.completed_at = now
        payment.updated_at = now
        db.session.commit()
        current_app.logger.info(
            "payment completed order_id=%s transaction_id=%s", order_id, payment.transaction_id
        )
        return payment

    return run_with_retry(_op)


def fail_payment(order_id: int, reason: str) -> Payment:
    """Mark an order's payment as failed (PENDING -> FAILED)."""
    if not reason or not reason.strip():
        raise ValidationError("reason is required")

    def _op():
        begin_immediate()
        _get_order_locked(order_id)
        payment = _get_payment_locked(order_id)
        if payment.status != PAYMENT_STATUS_PENDING:
            raise PaymentError(
                f"Cannot fail payment with status {payment.status}",
                details={"order_id": order_id, "status": payment.status},
            )
        payment.status = PAYMENT_STATUS_FAILED
        payment.failure_reason = reason.strip()
        payment.updated_at = utcnow()
        db.session.commit()
        current_app.logger.info("payment failed order_id=%s reason=%r", order_id, payment.failure_reason)
        return payment

    return run_with_retry(_op)


def get_payment_for_order(order_id: int) -> Payment:
    payment = db.session.query(Payment).filter_by(order_id=order_id).first()
    if payment is None:
        raise NotFoundError("Payment", order_id)
    return payment
