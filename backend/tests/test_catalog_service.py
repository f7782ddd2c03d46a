import pytest

from bookstore.extensions import db
from bookstore.models import Book, Category
from bookstore.services import cart_service, catalog_service, inventory_service, order_service
from bookstore.services.errors import (
    ConflictError,
    DuplicateError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)


class TestCategories:

    def test_create_and_list(self, db_session):
        catalog_service.create_category("Science")
        hidden = catalog_service.create_category("Archive", is_active=False)

        assert [c.name for c in catalog_service.list_categories()] == ["Archive", "Science"]
        assert [c.name for c in catalog_service.list_categories(active_only=True)] == ["Science"]
        assert catalog_service.toggle_category(hidden.id).is_active is True

    def test_duplicate_name_case_insensitive(self, db_session):
        catalog_service.create_category("Poetry")
        with pytest.raises(DuplicateError):
            catalog_service.create_category("poetry")

    def test_update_rename_conflict(self, db_session):
        catalog_service.create_category("History")
        art = catalog_service.create_category("Art")
        with pytest.raises(DuplicateError):
            catalog_service.update_category(art.id, {"name": "HISTORY"})
        assert catalog_service.update_category(art.id, {"description": "Painting"}).description == "Painting"

    def test_delete_refused_while_books_reference_it(self, category, make_book):
        make_book(stock=0)
        with pytest.raises(ConflictError):
            catalog_service.delete_category(category.id)

    def test_delete_empty_category(self, db_session):
        empty = catalog_service.create_category("Empty")
        catalog_service.delete_category(empty.id)
        assert db.session.get(Category, empty.id) is None
        with pytest.raises(NotFoundError):
            catalog_service.get_category(empty.id)


class TestBooks:

    def test_duplicate_isbn(self, make_book, category, admin_user):
        book = make_book(stock=1)
        with pytest.raises(DuplicateError):
            catalog_service.create_book(
                {"isbn": book.isbn, "title": "Copy", "author": "X", "price_cents": 100, "category_id": category.id},
                actor_user_id=admin_user.id,
            )

    def test_unknown_category(self, db_session, admin_user):
        with pytest.raises(NotFoundError):
            catalog_service.create_book(
                {"isbn": "9781111111111", "title": "T", "author": "A", "price_cents": 100, "category_id": 4242},
                actor_user_id=admin_user.id,
            )

    def test_stock_cannot_be_edited_directly(self, make_book):
        book = make_book(stock=3)
        with pytest.raises(ValidationError):
            catalog_service.update_book(book.id, {"stock_quantity": 100})
        assert db.session.get(Book, book.id).stock_quantity == 3

    def test_zero_stock_book_cannot_be_made_available(self, make_book):
        book = make_book(stock=0)
        with pytest.raises(ValidationError):
            catalog_service.update_book(book.id, {"status": "AVAILABLE"})

        db.session.expire_all()
        assert db.session.get(Book, book.id).status == "OUT_OF_STOCK"

    def test_stocked_book_cannot_be_marked_out_of_stock(self, make_book):
        book = make_book(stock=2)
        with pytest.raises(ValidationError):
            catalog_service.update_book(book.id, {"status": "OUT_OF_STOCK"})

        db.session.expire_all()
        assert db.session.get(Book, book.id).status == "AVAILABLE"

    def test_discontinued_book_in_cart_cannot_be_bought(self, make_book, customer_user):
        book = make_book(stock=2)
        cart_service.add_to_cart(customer_user.id, book.id, 1)
        catalog_service.update_book(book.id, {"status": "DISCONTINUED"})

        with pytest.raises(InsufficientStockError):
            order_service.create_order(customer_user.id, "1 Main St", "555-0100")

        db.session.expire_all()
        book = db.session.get(Book, book.id)
        assert book.stock_quantity == 2
        assert book.status == "DISCONTINUED"

    def test_update_bumps_version(self, make_book):
        book = make_book(stock=3)
        version = book.version_id
        updated = catalog_service.update_book(book.id, {"title": "Renamed", "price_cents": 2500})
        assert updated.title == "Renamed"
        assert updated.version_id > version

    def test_search_filters_and_sorting(self, make_book):
        make_book(title="Dune", author="Frank Herbert", price_cents=1200)
        make_book(title="Emma", author="Jane Austen", price_cents=800)
        make_book(title="Persuasion", author="Jane Austen", price_cents=950)

        assert [b.title for b in catalog_service.search_books(search="austen")] == ["Emma", "Persuasion"]
        assert [b.title for b in catalog_service.search_books(max_price_cents=1000, sort_by="price",
                                                              sort_descending=True)] == ["Persuasion", "Emma"]
        assert [b.title for b in catalog_service.search_books(min_price_cents=1000)] == ["Dune"]
        assert len(catalog_service.search_books(status="AVAILABLE")) == 3

    def test_search_unknown_status(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.search_books(status="LOST")

    def test_delete_unused_book(self, category, admin_user):
        book = catalog_service.create_book(
            {"isbn": "9782222222222", "title": "Draft", "author": "A", "price_cents": 100, "category_id": category.id},
            actor_user_id=admin_user.id,
        )
        catalog_service.delete_book(book.id)
        assert db.session.get(Book, book.id) is None

    def test_delete_refused_while_in_cart(self, make_book, customer_user):
        book = make_book(stock=3)
        cart_service.add_to_cart(customer_user.id, book.id, 1)
        with pytest.raises(ConflictError):
            catalog_service.delete_book(book.id)

    def test_delete_refused_with_ledger_history(self, make_book):
        book = make_book(stock=3)
        with pytest.raises(ConflictError):
            catalog_service.delete_book(book.id)
        assert inventory_service.get_ledger_total(book.id) == 3
