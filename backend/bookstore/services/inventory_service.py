# Overview: Service-layer operations for inventory; the single funnel for every stock change.

"""
Bookstore Inventory Invariants (authoritative)

Stock model:
- Book.stock_quantity is a counter; InventoryLog is its append-only history.
- Every change goes through _apply_stock_change(), which updates the counter
  and appends the log row in the same DB transaction.
- For every book: stock_quantity == SUM(InventoryLog.quantity_change).
  The initial stock of a new book is logged with reason "Initial stock".

Business invariants:
- Stock may never go below zero (NegativeStockError).
- quantity_change is never zero; a no-op is not an event.
- A book at zero stock flips AVAILABLE -> OUT_OF_STOCK; a restock flips
  OUT_OF_STOCK -> AVAILABLE. DISCONTINUED and COMING_SOON are never touched.

Time semantics:
- All internal datetimes are UTC-naive; filters accept ISO-8601 strings.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Book, InventoryLog
from ..models.catalog import (
    BOOK_STATUS_AVAILABLE,
    BOOK_STATUS_OUT_OF_STOCK,
    BOOK_STATUS_DISCONTINUED,
)
from bookstore.time_utils import utcnow, parse_iso_datetime
from .concurrency import begin_immediate, lock_for_update, run_with_retry
from .errors import NegativeStockError, NotFoundError, ValidationError


def _get_book_locked(book_id: int) -> Book:
    book = lock_for_update(db.session.query(Book).filter_by(id=book_id)).populate_existing().first()
    if book is None:
        raise NotFoundError("Book", book_id)
    return book


def _next_status(book: Book, new_quantity: int) -> str:
    if book.status == BOOK_STATUS_AVAILABLE and new_quantity == 0:
        return BOOK_STATUS_OUT_OF_STOCK
    if book.status == BOOK_STATUS_OUT_OF_STOCK and new_quantity > 0:
        return BOOK_STATUS_AVAILABLE
    return book.status


def _apply_stock_change(
    *,
    book: Book,
    quantity_change: int,
    reason: str,
    actor_user_id: int,
    notes: str | None = None,
    order_id: int | None = None,
) -> InventoryLog:
    """Core stock change without retry or commit.

    Called by adjust_stock() and by order placement/cancellation, which own
    the surrounding transaction. The caller must already hold the book row.
    """
    if quantity_change == 0:
        raise ValidationError("quantity_change must be non-zero")
    if not reason or not reason.strip():
        raise ValidationError("reason is required")

    new_quantity = book.stock_quantity + quantity_change
    if new_quantity < 0:
        raise NegativeStockError(book.id, book.stock_quantity, quantity_change)

    book.stock_quantity = new_quantity
    book.status = _next_status(book, new_quantity)
    book.updated_at = utcnow()

    log = InventoryLog(
        book_id=book.id,
        user_id=actor_user_id,
        quantity_change=quantity_change,
        quantity_after=new_quantity,
        reason=reason.strip(),
        notes=notes,
        order_id=order_id,
        logged_at=utcnow(),
    )
    db.session.add(log)
    db.session.flush()
    return log


def adjust_stock(
    book_id: int,
    quantity_change: int,
    reason: str,
    actor_user_id: int,
    notes: str | None = None,
) -> InventoryLog:
    """
    Apply a signed stock delta to a book and record it in the ledger.

    Used for manual restock and corrections. Order placement and cancellation
    share the same inner logic inside their own transaction.

    Raises:
        NotFoundError: book does not exist
        NegativeStockError: result would be below zero
        ValidationError: zero delta or blank reason
    """
    def _op():
        begin_immediate()
        book = _get_book_locked(book_id)
        log = _apply_stock_change(
            book=book,
            quantity_change=quantity_change,
            reason=reason,
            actor_user_id=actor_user_id,
            notes=notes,
        )
        db.session.commit()
        current_app.logger.info(
            "stock adjusted book_id=%s change=%s after=%s reason=%r by user_id=%s",
            book_id, quantity_change, log.quantity_after, log.reason, actor_user_id,
        )
        return log

    return run_with_retry(_op)


def list_low_stock_books(threshold: int | None = None) -> list[Book]:
    """Books strictly below threshold, excluding DISCONTINUED, lowest stock first."""
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 5)
    if threshold < 0:
        raise ValidationError("threshold must be >= 0")

    return (
        db.session.query(Book)
        .filter(
            Book.stock_quantity < threshold,
            Book.status != BOOK_STATUS_DISCONTINUED,
        )
        .order_by(Book.stock_quantity.asc(), Book.id.asc())
        .all()
    )


def list_inventory_logs(
    *,
    book_id: int | None = None,
    user_id: int | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    limit: int = 200,
) -> list[InventoryLog]:
    """Newest first. Date bounds are inclusive ISO-8601 strings."""
    q = db.session.query(InventoryLog)

    if book_id is not None:
        q = q.filter(InventoryLog.book_id == book_id)
    if user_id is not None:
        q = q.filter(InventoryLog.user_id == user_id)

    try:
        start_dt = parse_iso_datetime(start_date)
        end_dt = parse_iso_datetime(end_date)
    except ValueError:
        raise ValidationError("start_date/end_date must be ISO-8601")

    if start_dt:
        q = q.filter(InventoryLog.logged_at >= start_dt)
    if end_dt:
        q = q.filter(InventoryLog.logged_at <= end_dt)

    return (
        q.order_by(InventoryLog.logged_at.desc(), InventoryLog.id.desc())
        .limit(limit)
        .all()
    )


def get_ledger_total(book_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(InventoryLog.quantity_change), 0))
        .filter(InventoryLog.book_id == book_id)
        .scalar()
    )
    return int(total or 0)


def reconcile_book_ledger(book_id: int | None = None) -> list[dict]:
    """
    Compare each book's stock counter to the sum of its ledger deltas.

    Returns one row per book checked; "ok" is False where they disagree.
    Read-only: mismatches are reported, never repaired.
    """
    q = db.session.query(Book)
    if book_id is not None:
        if db.session.get(Book, book_id) is None:
            raise NotFoundError("Book", book_id)
        q = q.filter(Book.id == book_id)

    ledger_totals = dict(
        db.session.query(InventoryLog.book_id, func.sum(InventoryLog.quantity_change))
        .group_by(InventoryLog.book_id)
        .all()
    )

    rows = []
    for book in q.order_by(Book.id.asc()).all():
        ledger_total = int(ledger_totals.get(book.id) or 0)
        rows.append({
            "book_id": book.id,
            "title": book.title,
            "stock_quantity": book.stock_quantity,
            "ledger_total": ledger_total,
            "ok": ledger_total == book.stock_quantity,
        })
    return rows
