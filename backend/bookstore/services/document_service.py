# Overview: Service-layer allocation of human-readable order numbers.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import OrderSequence
from bookstore.time_utils import utcnow


ORDER_NUMBER_PREFIX = "ORD"
ORDER_NUMBER_PAD = 6


def _current_value(sequence_date: str) -> int:
    return (
        db.session.query(OrderSequence.next_number)
        .filter_by(sequence_date=sequence_date)
        .scalar()
    )


def next_order_number(now: datetime | None = None) -> str:
    """
    Atomically allocate the next order number for the current UTC day.

    Format: ORD-YYYYMMDD-NNNNNN, numbering restarts at 1 every day.

    Runs inside the caller's transaction and does NOT commit; the number is
    only consumed if the order that uses it commits. The increment is a single
    UPDATE so two checkouts can never read the same value. The first order of
    a day inserts the row; a concurrent insert for the same day loses on the
    unique constraint and falls back to the UPDATE path.
    """
    day = (now or utcnow()).strftime("%Y%m%d")

    stmt = (
        update(OrderSequence)
        .where(OrderSequence.sequence_date == day)
        .values(next_number=OrderSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_value(day) - 1
    else:
        seq = OrderSequence(sequence_date=day, next_number=2)
        try:
            with db.session.begin_nested():
                db.session.add(seq)
            next_num = 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current_value(day) - 1

    return f"{ORDER_NUMBER_PREFIX}-{day}-{next_num:0{ORDER_NUMBER_PAD}d}"
