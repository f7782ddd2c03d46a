# Overview: Read-only aggregate figures for the admin dashboard.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Book, Order, Payment, User
from ..models.auth import VALID_ROLES
from ..models.catalog import BOOK_STATUSES
from ..models.orders import PAYMENT_STATUS_COMPLETED
from bookstore.time_utils import utcnow, start_of_day, start_of_month


def _revenue_since(since: datetime | None) -> tuple[int, int]:
    """(revenue_cents, order_count) over orders whose payment is COMPLETED."""
    q = (
        db.session.query(func.coalesce(func.sum(Order.total_amount_cents), 0), func.count(Order.id))
        .join(Payment, Payment.order_id == Order.id)
        .filter(Payment.status == PAYMENT_STATUS_COMPLETED)
    )
    if since is not None:
        q = q.filter(Order.ordered_at >= since)
    revenue, count = q.one()
    return int(revenue or 0), int(count or 0)


def get_dashboard_statistics(now: datetime | None = None) -> dict:
    """
    Headline figures: active users per role, books per status, order count
    and revenue (completed payments only) in total, this month and today.

    average_order_value_cents uses integer division over paid orders.
    """
    now = now or utcnow()

    user_counts = dict(
        db.session.query(User.role, func.count(User.id))
        .filter(User.is_active.is_(True))
        .group_by(User.role)
        .all()
    )
    users_by_role = {role: int(user_counts.get(role, 0)) for role in VALID_ROLES}

    book_counts = dict(
        db.session.query(Book.status, func.count(Book.id)).group_by(Book.status).all()
    )
    books_by_status = {status: int(book_counts.get(status, 0)) for status in BOOK_STATUSES}

    total_orders = db.session.query(func.count(Order.id)).scalar() or 0

    total_revenue, paid_orders = _revenue_since(None)
    revenue_this_month, _ = _revenue_since(start_of_month(now))
    revenue_today, _ = _revenue_since(start_of_day(now))

    return {
        "total_users": sum(users_by_role.values()),
        "users_by_role": users_by_role,
        "total_books": sum(books_by_status.values()),
        "books_by_status": books_by_status,
        "total_orders": int(total_orders),
        "total_revenue_cents": total_revenue,
        "revenue_this_month_cents": revenue_this_month,
        "revenue_today_cents": revenue_today,
        "average_order_value_cents": total_revenue // paid_orders if paid_orders else 0,
    }
