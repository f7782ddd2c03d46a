"""
Authorization tests for the bookstore API.

Verifies:
- Unauthenticated requests return 401
- Customers are denied staff and admin operations (403)
- Staff are denied admin-only operations (403)
- Public catalog reads need no token
"""

import pytest


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("POST", "/api/auth/logout"),
            ("GET", "/api/cart"),
            ("POST", "/api/cart"),
            ("GET", "/api/wishlist"),
            ("POST", "/api/orders"),
            ("GET", "/api/orders"),
            ("POST", "/api/orders/1/cancel"),
            ("GET", "/api/admin/orders"),
            ("PUT", "/api/admin/orders/1/status"),
            ("GET", "/api/admin/dashboard"),
            ("PUT", "/api/inventory/1"),
            ("GET", "/api/inventory/logs"),
            ("POST", "/api/admin/books"),
            ("POST", "/api/admin/categories"),
            ("GET", "/api/admin/users"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/cart", headers={"Authorization": "Bearer not-a-real-token"})
        assert resp.status_code == 401

    def test_catalog_is_public(self, client, make_book):
        book = make_book(stock=1)
        assert client.get("/api/books").status_code == 200
        assert client.get(f"/api/books/{book.id}").status_code == 200
        assert client.get("/api/categories").status_code == 200
        assert client.get("/health").status_code == 200


# =============================================================================
# CUSTOMER DENIED STAFF/ADMIN OPERATIONS (403)
# =============================================================================


class TestCustomerDenied:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/admin/orders"),
            ("GET", "/api/admin/orders/statistics"),
            ("PUT", "/api/admin/orders/1/status"),
            ("POST", "/api/admin/orders/1/cancel"),
            ("POST", "/api/admin/orders/1/payment/complete"),
            ("GET", "/api/admin/dashboard"),
            ("PUT", "/api/inventory/1"),
            ("GET", "/api/inventory/low-stock"),
            ("POST", "/api/admin/books"),
            ("DELETE", "/api/admin/books/1"),
            ("POST", "/api/admin/categories"),
            ("GET", "/api/admin/users"),
        ],
    )
    def test_forbidden(self, client, customer_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=customer_headers)
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"
        assert resp.json["required_permission"]

    def test_customer_can_use_own_cart(self, client, customer_headers):
        assert client.get("/api/cart", headers=customer_headers).status_code == 200
        assert client.get("/api/orders", headers=customer_headers).status_code == 200


# =============================================================================
# STAFF DENIED ADMIN-ONLY OPERATIONS (403)
# =============================================================================


class TestStaffDenied:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/admin/users"),
            ("POST", "/api/admin/users"),
            ("POST", "/api/admin/books"),
            ("PUT", "/api/admin/categories/1"),
            ("GET", "/api/cart"),
            ("POST", "/api/orders"),
        ],
    )
    def test_forbidden(self, client, staff_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=staff_headers)
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"

    def test_staff_can_fulfil(self, client, staff_headers):
        assert client.get("/api/admin/orders", headers=staff_headers).status_code == 200
        assert client.get("/api/inventory/logs", headers=staff_headers).status_code == 200
        assert client.get("/api/admin/dashboard", headers=staff_headers).status_code == 200


class TestAdminAllowed:

    def test_admin_reaches_everything(self, client, admin_headers):
        for path in ("/api/admin/users", "/api/admin/orders", "/api/admin/dashboard",
                     "/api/inventory/low-stock", "/api/cart"):
            assert client.get(path, headers=admin_headers).status_code == 200, path
