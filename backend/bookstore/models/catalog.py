from __future__ import annotations

from ..extensions import db
from bookstore.time_utils import to_utc_z


BOOK_STATUS_AVAILABLE = "AVAILABLE"
BOOK_STATUS_OUT_OF_STOCK = "OUT_OF_STOCK"
BOOK_STATUS_DISCONTINUED = "DISCONTINUED"
BOOK_STATUS_COMING_SOON = "COMING_SOON"

BOOK_STATUSES = (
    BOOK_STATUS_AVAILABLE,
    BOOK_STATUS_OUT_OF_STOCK,
    BOOK_STATUS_DISCONTINUED,
    BOOK_STATUS_COMING_SOON,
)


class Category(db.Model):
    """Book category (Fiction, Science, ...). Names are globally unique."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True, index=True)
    description = db.Column(db.String(500), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Book(db.Model):
    """
    Book master data.

    STOCK DESIGN DECISION:
    Book.stock_quantity is a cached counter guarded by the inventory ledger.
    - Never assign stock_quantity directly outside inventory_service.adjust_stock
    - Every change appends an InventoryLog row in the same DB transaction
    - stock_quantity == SUM(inventory_logs.quantity_change) for the book

    CONCURRENCY:
    version_id is an optimistic lock. Two transactions that both read the
    same version and both try to write will see StaleDataError on the loser.
    """
    __tablename__ = "books"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_books_stock_non_negative"),
        db.CheckConstraint("price_cents > 0", name="ck_books_price_positive"),
        db.Index("ix_books_category_status", "category_id", "status"),
        db.Index("ix_books_title", "title"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    isbn = db.Column(db.String(20), nullable=False, unique=True, index=True)
    title = db.Column(db.String(200), nullable=False)
    author = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(2000), nullable=True)
    image_url = db.Column(db.String(500), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    publisher = db.Column(db.String(100), nullable=True)
    publish_date = db.Column(db.DateTime(timezone=True), nullable=True)
    page_count = db.Column(db.Integer, nullable=False, default=0)
    language = db.Column(db.String(50), nullable=False, default="English")

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=BOOK_STATUS_AVAILABLE, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    category = db.relationship("Category", backref=db.backref("books", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Book id={self.id} isbn={self.isbn!r} title={self.title!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "isbn": self.isbn,
            "title": self.title,
            "author": self.author,
            "description": self.description,
            "image_url": self.image_url,
            "price_cents": self.price_cents,
            "stock_quantity": self.stock_quantity,
            "publisher": self.publisher,
            "publish_date": to_utc_z(self.publish_date),
            "page_count": self.page_count,
            "language": self.language,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "status": self.status,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
