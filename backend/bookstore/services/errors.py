# Overview: Domain error types shared by all bookstore services.

from __future__ import annotations


class BookstoreError(Exception):
    """
    Base class for every business-rule failure.

    Routes serialize these directly; anything that is NOT a BookstoreError
    is an unexpected failure and becomes a logged 500.
    """
    code = "BOOKSTORE_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(BookstoreError):
    code = "VALIDATION_ERROR"
    status_code = 400


class EmptyCartError(BookstoreError):
    code = "EMPTY_CART"
    status_code = 400

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class InsufficientStockError(BookstoreError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, book_id: int, requested: int, available: int, title: str | None = None):
        label = f"'{title}'" if title else f"book {book_id}"
        super().__init__(
            f"Insufficient stock for {label}: requested {requested}, available {available}",
            details={"book_id": book_id, "requested_quantity": requested, "available": available},
        )
        self.book_id = book_id


class NegativeStockError(BookstoreError):
    code = "NEGATIVE_STOCK"
    status_code = 409

    def __init__(self, book_id: int, current: int, quantity_change: int):
        super().__init__(
            f"Stock for book {book_id} cannot go below zero "
            f"(current {current}, change {quantity_change})",
            details={"book_id": book_id, "current": current, "quantity_change": quantity_change},
        )
        self.book_id = book_id


class InvalidTransitionError(BookstoreError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, from_status: str, to_status: str):
        super().__init__(
            f"Cannot change order status from {from_status} to {to_status}",
            details={"from": from_status, "to": to_status},
        )
        self.from_status = from_status
        self.to_status = to_status


class NotCancellableError(BookstoreError):
    code = "NOT_CANCELLABLE"
    status_code = 409

    def __init__(self, order_id: int, status: str):
        super().__init__(
            f"Order {order_id} cannot be cancelled in status {status}",
            details={"order_id": order_id, "status": status},
        )


class ForbiddenError(BookstoreError):
    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(BookstoreError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id):
        super().__init__(
            f"{entity} {entity_id} not found",
            details={"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(BookstoreError):
    code = "CONFLICT"
    status_code = 409


class DuplicateError(BookstoreError):
    code = "DUPLICATE"
    status_code = 409
