"""
Order workflow tests.

Verifies:
- Checkout decrements stock through the ledger and snapshots prices
- A failed checkout changes nothing (no order, no stock movement, cart intact)
- Cancellation restores stock with new ledger rows and settles the payment
- The status lifecycle rejects illegal transitions
"""

import re

import pytest

from bookstore.extensions import db
from bookstore.models import Book, CartItem, InventoryLog, Order
from bookstore.models.catalog import BOOK_STATUS_AVAILABLE, BOOK_STATUS_OUT_OF_STOCK
from bookstore.services import cart_service, inventory_service, order_service, payment_service
from bookstore.services.errors import (
    EmptyCartError,
    ForbiddenError,
    InsufficientStockError,
    InvalidTransitionError,
    NegativeStockError,
    NotCancellableError,
    NotFoundError,
    ValidationError,
)


def _checkout(user, **overrides):
    params = {
        "user_id": user.id,
        "shipping_address": "1 Main St",
        "shipping_phone": "555-0100",
    }
    params.update(overrides)
    return order_service.create_order(**params)


def _advance(order_id, actor, *statuses):
    order = None
    for status in statuses:
        order = order_service.update_order_status(order_id, status, actor)
    return order


# =============================================================================
# CHECKOUT
# =============================================================================


class TestCreateOrder:

    def test_places_order_and_moves_stock(self, customer_user, make_book):
        book = make_book(stock=10, price_cents=1500)
        cart_service.add_to_cart(customer_user.id, book.id, 3)

        order = _checkout(customer_user, note="Leave at door", payment_method="PAYPAL")

        assert order.status == "PENDING"
        assert order.total_amount_cents == 4500
        assert re.fullmatch(r"ORD-\d{8}-\d{6}", order.order_number)
        assert len(order.items) == 1
        assert order.items[0].quantity == 3
        assert order.items[0].price_at_order_cents == 1500
        assert order.items[0].line_total_cents == 4500
        assert order.payment.status == "PENDING"
        assert order.payment.method == "PAYPAL"
        assert order.payment.amount_cents == 4500

        assert db.session.get(Book, book.id).stock_quantity == 7
        assert cart_service.get_cart_count(customer_user.id) == 0

        log = (
            db.session.query(InventoryLog)
            .filter_by(book_id=book.id, order_id=order.id)
            .one()
        )
        assert log.quantity_change == -3
        assert log.quantity_after == 7
        assert log.reason == "Order placed"

    def test_price_is_snapshotted(self, customer_user, make_book):
        book = make_book(stock=5, price_cents=1000)
        cart_service.add_to_cart(customer_user.id, book.id, 1)
        order = _checkout(customer_user)

        book.price_cents = 9999
        db.session.commit()

        db.session.expire_all()
        assert db.session.get(Order, order.id).items[0].price_at_order_cents == 1000

    def test_empty_cart_rejected(self, customer_user):
        with pytest.raises(EmptyCartError):
            _checkout(customer_user)
        assert db.session.query(Order).count() == 0

    def test_insufficient_stock_changes_nothing(self, customer_user, admin_user, make_book):
        plenty = make_book(stock=10)
        scarce = make_book(stock=2)
        cart_service.add_to_cart(customer_user.id, plenty.id, 4)
        cart_service.add_to_cart(customer_user.id, scarce.id, 2)
        # Stock drops after the book was added to the cart
        inventory_service.adjust_stock(scarce.id, -1, "Damaged", admin_user.id)
        logs_before = db.session.query(InventoryLog).count()

        with pytest.raises(InsufficientStockError) as exc_info:
            _checkout(customer_user)

        assert exc_info.value.details["book_id"] == scarce.id
        assert exc_info.value.details["requested_quantity"] == 2
        assert exc_info.value.details["available"] == 1

        db.session.expire_all()
        assert db.session.query(Order).count() == 0
        assert db.session.get(Book, plenty.id).stock_quantity == 10
        assert db.session.get(Book, scarce.id).stock_quantity == 1
        assert db.session.query(InventoryLog).count() == logs_before
        assert db.session.query(CartItem).filter_by(user_id=customer_user.id).count() == 2

    def test_missing_shipping_address_rejected(self, customer_user, make_book):
        book = make_book(stock=3)
        cart_service.add_to_cart(customer_user.id, book.id, 1)
        with pytest.raises(ValidationError):
            _checkout(customer_user, shipping_address="   ")

    def test_unknown_payment_method_rejected(self, customer_user, make_book):
        book = make_book(stock=3)
        cart_service.add_to_cart(customer_user.id, book.id, 1)
        with pytest.raises(ValidationError):
            _checkout(customer_user, payment_method="BITCOIN")
        assert db.session.get(Book, book.id).stock_quantity == 3

    def test_selling_last_copy_marks_out_of_stock(self, customer_user, make_book):
        book = make_book(stock=2)
        cart_service.add_to_cart(customer_user.id, book.id, 2)
        _checkout(customer_user)

        db.session.expire_all()
        book = db.session.get(Book, book.id)
        assert book.stock_quantity == 0
        assert book.status == BOOK_STATUS_OUT_OF_STOCK

    def test_failure_mid_checkout_rolls_back_earlier_lines(self, customer_user, make_book, monkeypatch):
        first = make_book(stock=5)
        second = make_book(stock=5)
        cart_service.add_to_cart(customer_user.id, first.id, 2)
        cart_service.add_to_cart(customer_user.id, second.id, 3)
        logs_before = db.session.query(InventoryLog).count()

        real_apply = order_service._apply_stock_change
        calls = []

        def fail_on_second_line(**kwargs):
            calls.append(kwargs["book"].id)
            if len(calls) == 2:
                # Stock vanished between validation and the decrement
                raise NegativeStockError(kwargs["book"].id, 0, kwargs["quantity_change"])
            return real_apply(**kwargs)

        monkeypatch.setattr(order_service, "_apply_stock_change", fail_on_second_line)

        with pytest.raises(InsufficientStockError) as exc_info:
            _checkout(customer_user)

        assert calls == [first.id, second.id]
        assert exc_info.value.details == {"book_id": second.id, "requested_quantity": 3, "available": 0}

        db.session.expire_all()
        assert db.session.query(Order).count() == 0
        assert db.session.get(Book, first.id).stock_quantity == 5
        assert db.session.get(Book, second.id).stock_quantity == 5
        assert db.session.query(InventoryLog).count() == logs_before
        assert db.session.query(CartItem).filter_by(user_id=customer_user.id).count() == 2

    def test_order_numbers_are_sequential(self, customer_user, make_book):
        book = make_book(stock=10)
        numbers = []
        for _ in range(3):
            cart_service.add_to_cart(customer_user.id, book.id, 1)
            numbers.append(_checkout(customer_user).order_number)

        suffixes = [int(n.rsplit("-", 1)[1]) for n in numbers]
        assert suffixes == [suffixes[0], suffixes[0] + 1, suffixes[0] + 2]
        assert len(set(numbers)) == 3


# =============================================================================
# CANCELLATION
# =============================================================================


class TestCancelOrder:

    def test_cancel_restores_stock_and_fails_payment(self, customer_user, make_book):
        book = make_book(stock=5)
        cart_service.add_to_cart(customer_user.id, book.id, 5)
        order = _checkout(customer_user)

        cancelled = order_service.cancel_order(customer_user.id, order.id)

        assert cancelled.status == "CANCELLED"
        assert cancelled.cancelled_at is not None
        assert cancelled.payment.status == "FAILED"
        assert cancelled.payment.failure_reason == "Order cancelled"

        db.session.expire_all()
        book = db.session.get(Book, book.id)
        assert book.stock_quantity == 5
        assert book.status == BOOK_STATUS_AVAILABLE

        reasons = [
            (log.quantity_change, log.reason)
            for log in db.session.query(InventoryLog).filter_by(order_id=order.id).order_by(InventoryLog.id)
        ]
        assert reasons == [(-5, "Order placed"), (5, "Order cancelled")]

    def test_cancel_other_users_order_forbidden(self, customer_user, other_customer, make_book):
        book = make_book(stock=5)
        cart_service.add_to_cart(customer_user.id, book.id, 1)
        order = _checkout(customer_user)

        with pytest.raises(ForbiddenError):
            order_service.cancel_order(other_customer.id, order.id)
        assert db.session.get(Order, order.id).status == "PENDING"

    def test_cannot_cancel_once_packed(self, customer_user, staff_user, make_book):
        book = make_book(stock=5)
        cart_service.add_to_cart(customer_user.id, book.id, 2)
        order = _checkout(customer_user)
        _advance(order.id, staff_user, "PROCESSING", "PACKED")

        with pytest.raises(NotCancellableError):
            order_service.cancel_order(customer_user.id, order.id)

        db.session.expire_all()
        assert db.session.get(Book, book.id).stock_quantity == 3

    def test_cancel_twice_rejected(self, customer_user, make_book):
        book = make_book(stock=5)
        cart_service.add_to_cart(customer_user.id, book.id, 1)
        order = _checkout(customer_user)
        order_service.cancel_order(customer_user.id, order.id)

        with pytest.raises(NotCancellableError):
            order_service.cancel_order(customer_user.id, order.id)

        db.session.expire_all()
        assert db.session.get(Book, book.id).stock_quantity == 5

    def test_admin_cancel_refunds_completed_payment(self, customer_user, staff_user, make_book):
        book = make_book(stock=5)
        cart_service.add_to_cart(customer_user.id, book.id, 1)
        order = _checkout(customer_user, payment_method="CREDIT_CARD")
        payment_service.complete_payment(order.id, "TXN-TEST-1")
        _advance(order.id, staff_user, "PROCESSING")

        cancelled = order_service.admin_cancel_order(order.id, staff_user)

        assert cancelled.status == "CANCELLED"
        assert cancelled.payment.status == "REFUNDED"

    def test_cancel_and_payment_lock_order_before_payment(self, customer_user, make_book, monkeypatch):
        book = make_book(stock=5)
        cart_service.add_to_cart(customer_user.id, book.id, 1)
        first = _checkout(customer_user)
        cart_service.add_to_cart(customer_user.id, book.id, 1)
        second = _checkout(customer_user)

        locked = []

        def recording_lock(query):
            locked.append(query.column_descriptions[0]["entity"].__name__)
            return query.with_for_update()

        monkeypatch.setattr(payment_service, "lock_for_update", recording_lock)

        payment_service.complete_payment(first.id)
        assert locked == ["Order", "Payment"]

        locked.clear()
        cancelled = order_service.cancel_order(customer_user.id, first.id)
        assert locked == ["Order", "Payment"]
        assert cancelled.payment.status == "REFUNDED"

        locked.clear()
        payment_service.fail_payment(second.id, "Card declined")
        assert locked == ["Order", "Payment"]

    def test_customer_cannot_admin_cancel(self, customer_user, make_book):
        book = make_book(stock=5)
        cart_service.add_to_cart(customer_user.id, book.id, 1)
        order = _checkout(customer_user)

        with pytest.raises(ForbiddenError):
            order_service.admin_cancel_order(order.id, customer_user)


# =============================================================================
# STATUS LIFECYCLE
# =============================================================================


class TestOrderStatus:

    @pytest.fixture
    def order(self, customer_user, make_book):
        book = make_book(stock=5)
        cart_service.add_to_cart(customer_user.id, book.id, 1)
        return _checkout(customer_user)

    def test_full_lifecycle_sets_timestamps(self, order, staff_user):
        _advance(order.id, staff_user, "PROCESSING", "PACKED")
        shipped = order_service.update_order_status(order.id, "SHIPPED", staff_user)
        assert shipped.shipped_at is not None
        assert shipped.delivered_at is None

        delivered = order_service.update_order_status(order.id, "DELIVERED", staff_user)
        assert delivered.status == "DELIVERED"
        assert delivered.delivered_at is not None

    def test_skipping_steps_rejected(self, order, staff_user):
        with pytest.raises(InvalidTransitionError) as exc_info:
            order_service.update_order_status(order.id, "DELIVERED", staff_user)
        assert exc_info.value.details == {"from": "PENDING", "to": "DELIVERED"}
        assert db.session.get(Order, order.id).status == "PENDING"

    def test_terminal_status_is_final(self, order, staff_user):
        _advance(order.id, staff_user, "PROCESSING", "PACKED", "SHIPPED", "DELIVERED")
        with pytest.raises(InvalidTransitionError):
            order_service.update_order_status(order.id, "PROCESSING", staff_user)

    def test_unknown_status_is_validation_error(self, order, staff_user):
        with pytest.raises(ValidationError):
            order_service.update_order_status(order.id, "LOST_IN_MAIL", staff_user)

    def test_cancel_through_status_update_restores_stock(self, order, staff_user):
        book_id = order.items[0].book_id
        _advance(order.id, staff_user, "PROCESSING", "CANCELLED")

        db.session.expire_all()
        assert db.session.get(Book, book_id).stock_quantity == 5

    def test_packed_cannot_be_cancelled_by_status_update(self, order, staff_user):
        _advance(order.id, staff_user, "PROCESSING", "PACKED")
        with pytest.raises(InvalidTransitionError):
            order_service.update_order_status(order.id, "CANCELLED", staff_user)

    def test_customer_cannot_change_status(self, order, customer_user):
        with pytest.raises(ForbiddenError):
            order_service.update_order_status(order.id, "PROCESSING", customer_user)


# =============================================================================
# QUERIES AND REPORTING
# =============================================================================


class TestOrderQueries:

    def test_user_sees_only_own_orders(self, customer_user, other_customer, make_book):
        book = make_book(stock=10)
        cart_service.add_to_cart(customer_user.id, book.id, 1)
        mine = _checkout(customer_user)
        cart_service.add_to_cart(other_customer.id, book.id, 1)
        theirs = _checkout(other_customer)

        assert [o.id for o in order_service.list_user_orders(customer_user.id)] == [mine.id]
        assert order_service.get_user_order(customer_user.id, mine.id).id == mine.id
        with pytest.raises(NotFoundError):
            order_service.get_user_order(customer_user.id, theirs.id)

    def test_list_all_orders_filters(self, customer_user, other_customer, staff_user, make_book):
        book = make_book(stock=10)
        cart_service.add_to_cart(customer_user.id, book.id, 1)
        first = _checkout(customer_user)
        cart_service.add_to_cart(other_customer.id, book.id, 1)
        second = _checkout(other_customer)
        order_service.update_order_status(second.id, "PROCESSING", staff_user)

        assert {o.id for o in order_service.list_all_orders()} == {first.id, second.id}
        assert [o.id for o in order_service.list_all_orders(status="PROCESSING")] == [second.id]
        assert [o.id for o in order_service.list_all_orders(search="other_cust")] == [second.id]
        assert [o.id for o in order_service.list_all_orders(search=first.order_number)] == [first.id]

    def test_statistics_count_completed_revenue_only(self, customer_user, make_book):
        book = make_book(stock=10, price_cents=2000)
        cart_service.add_to_cart(customer_user.id, book.id, 1)
        paid = _checkout(customer_user)
        cart_service.add_to_cart(customer_user.id, book.id, 2)
        _checkout(customer_user)
        payment_service.complete_payment(paid.id)

        stats = order_service.get_order_statistics()
        assert stats["total_orders"] == 2
        assert stats["by_status"]["PENDING"] == 2
        assert stats["by_status"]["DELIVERED"] == 0
        assert stats["total_revenue_cents"] == 2000

    def test_ledger_matches_stock_after_mixed_activity(self, customer_user, staff_user, make_book):
        book = make_book(stock=8)
        cart_service.add_to_cart(customer_user.id, book.id, 3)
        order = _checkout(customer_user)
        inventory_service.adjust_stock(book.id, 4, "Restock", staff_user.id)
        order_service.cancel_order(customer_user.id, order.id)
        cart_service.add_to_cart(customer_user.id, book.id, 2)
        _checkout(customer_user)

        rows = inventory_service.reconcile_book_ledger(book.id)
        assert rows == [{
            "book_id": book.id,
            "title": book.title,
            "stock_quantity": 10,
            "ledger_total": 10,
            "ok": True,
        }]
