# Overview: Order status state machine; pure rules, no database access.

"""
Bookstore Order Lifecycle

================================================================================
PURPOSE: Single source of truth for which order status changes are legal
================================================================================

STATE MACHINE:
    PENDING -> PROCESSING -> PACKED -> SHIPPED -> DELIVERED
    PENDING -> CANCELLED
    PROCESSING -> CANCELLED

    PENDING:    Order placed, stock already decremented, payment PENDING
    PROCESSING: Staff accepted the order
    PACKED:     Goods boxed; from here on the order can no longer be cancelled
    SHIPPED:    Handed to the carrier (sets shipped_at)
    DELIVERED:  Terminal (sets delivered_at)
    CANCELLED:  Terminal (sets cancelled_at, stock restored, payment settled)

RULES:
1. Cannot skip states (PENDING -> DELIVERED is forbidden)
2. Cannot move backwards
3. DELIVERED and CANCELLED accept no further transitions
================================================================================
"""

from __future__ import annotations

from ..models.orders import (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PROCESSING,
    ORDER_STATUS_PACKED,
    ORDER_STATUS_SHIPPED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_CANCELLED,
)
from .errors import InvalidTransitionError, ValidationError


VALID_ORDER_STATUSES = {
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PROCESSING,
    ORDER_STATUS_PACKED,
    ORDER_STATUS_SHIPPED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_CANCELLED,
}

# Statuses in which an order may still be cancelled (by its owner or by staff)
CANCELLABLE_STATUSES = {ORDER_STATUS_PENDING, ORDER_STATUS_PROCESSING}

VALID_TRANSITIONS = {
    (ORDER_STATUS_PENDING, ORDER_STATUS_PROCESSING),
    (ORDER_STATUS_PROCESSING, ORDER_STATUS_PACKED),
    (ORDER_STATUS_PACKED, ORDER_STATUS_SHIPPED),
    (ORDER_STATUS_SHIPPED, ORDER_STATUS_DELIVERED),
    (ORDER_STATUS_PENDING, ORDER_STATUS_CANCELLED),
    (ORDER_STATUS_PROCESSING, ORDER_STATUS_CANCELLED),
}


def validate_status(status: str) -> None:
    """
    Validate that a status value is one of the allowed order states.

    Raises:
        ValidationError: If status is not in VALID_ORDER_STATUSES
    """
    if status not in VALID_ORDER_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_ORDER_STATUSES))}",
            details={"status": status},
        )


def can_transition(from_status: str, to_status: str) -> bool:
    """
    Check if a status change is allowed.

    Same-state changes are NOT transitions and return False; re-applying
    SHIPPED would otherwise overwrite shipped_at.
    """
    validate_status(from_status)
    validate_status(to_status)
    return (from_status, to_status) in VALID_TRANSITIONS


def assert_transition(from_status: str, to_status: str) -> None:
    if not can_transition(from_status, to_status):
        raise InvalidTransitionError(from_status, to_status)


def is_cancellable(status: str) -> bool:
    return status in CANCELLABLE_STATUSES
