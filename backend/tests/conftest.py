"""
Pytest fixtures for bookstore backend tests.

Provides test database setup, role users, catalog factories, and test client.
"""

import pytest

from bookstore import create_app
from bookstore.extensions import db
from bookstore.models.auth import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_STAFF
from bookstore.services import auth_service, catalog_service


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'LOW_STOCK_THRESHOLD': 5,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


# =============================================================================
# USERS
# =============================================================================

@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory: make_user("alice", role=ROLE_CUSTOMER) -> User"""
    def _make(username: str, role: str = ROLE_CUSTOMER, **extra):
        return auth_service.create_user(
            username=username,
            email=f"{username}@bookstore.test",
            password=TEST_PASSWORD,
            full_name=username.title(),
            role=role,
            **extra,
        )
    return _make


@pytest.fixture(scope='function')
def admin_user(make_user):
    return make_user("admin_user", role=ROLE_ADMIN)


@pytest.fixture(scope='function')
def staff_user(make_user):
    return make_user("staff_user", role=ROLE_STAFF)


@pytest.fixture(scope='function')
def customer_user(make_user):
    return make_user("customer_user", role=ROLE_CUSTOMER, address="1 Main St", phone_number="555-0100")


@pytest.fixture(scope='function')
def other_customer(make_user):
    return make_user("other_customer", role=ROLE_CUSTOMER)


def get_auth_token(client, username: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.username))


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, staff_user.username))


@pytest.fixture(scope='function')
def customer_headers(client, customer_user):
    return auth_headers(get_auth_token(client, customer_user.username))


# =============================================================================
# CATALOG
# =============================================================================

@pytest.fixture(scope='function')
def category(db_session):
    return catalog_service.create_category("Fiction", "Novels")


@pytest.fixture(scope='function')
def make_book(db_session, category, admin_user):
    """Factory: make_book(stock=10, price_cents=1500) -> Book, stock logged as "Initial stock"."""
    counter = {"n": 0}

    def _make(stock: int = 10, price_cents: int = 1500, **extra):
        counter["n"] += 1
        patch = {
            "isbn": f"978000000{counter['n']:04d}",
            "title": extra.pop("title", f"Book {counter['n']}"),
            "author": extra.pop("author", "Test Author"),
            "price_cents": price_cents,
            "category_id": category.id,
            "stock_quantity": stock,
        }
        patch.update(extra)
        return catalog_service.create_book(patch, actor_user_id=admin_user.id)
    return _make
