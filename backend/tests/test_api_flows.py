"""
End-to-end API flows through the Flask test client.

Covers the happy path from registration to delivery plus the error
envelope ({"error", "code", "details"}) for business-rule failures.
"""

import pytest

from conftest import TEST_PASSWORD, auth_headers, get_auth_token


@pytest.fixture
def catalog_book(client, admin_headers):
    resp = client.post("/api/admin/categories", json={"name": "Mystery"}, headers=admin_headers)
    assert resp.status_code == 201, resp.json
    category_id = resp.json["category"]["id"]

    resp = client.post("/api/admin/books", json={
        "isbn": "9780000000999",
        "title": "The Hound",
        "author": "A. C. Doyle",
        "price_cents": 1250,
        "category_id": category_id,
        "stock_quantity": 5,
    }, headers=admin_headers)
    assert resp.status_code == 201, resp.json
    return resp.json["book"]


def _register(client, username="newreader"):
    resp = client.post("/api/auth/register", json={
        "username": username,
        "email": f"{username}@example.com",
        "password": TEST_PASSWORD,
        "full_name": "New Reader",
    })
    assert resp.status_code == 201, resp.json
    return auth_headers(resp.json["token"])


class TestAuthFlow:

    def test_register_login_me_logout(self, client, db_session):
        headers = _register(client)

        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.json["user"]["role"] == "CUSTOMER"
        assert "PLACE_ORDER" in me.json["permissions"]
        assert "password_hash" not in me.json["user"]

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_register_cannot_choose_role(self, client, db_session):
        resp = client.post("/api/auth/register", json={
            "username": "sneaky",
            "email": "sneaky@example.com",
            "password": TEST_PASSWORD,
            "full_name": "Sneaky",
            "role": "ADMIN",
        })
        assert resp.status_code == 400

    def test_weak_password(self, client, db_session):
        resp = client.post("/api/auth/register", json={
            "username": "weak", "email": "weak@example.com", "password": "password", "full_name": "Weak",
        })
        assert resp.status_code == 400
        assert resp.json["code"] == "WEAK_PASSWORD"

    def test_duplicate_username(self, client, customer_user):
        resp = client.post("/api/auth/register", json={
            "username": customer_user.username,
            "email": "another@example.com",
            "password": TEST_PASSWORD,
            "full_name": "Dup",
        })
        assert resp.status_code == 409
        assert resp.json["code"] == "DUPLICATE"

    def test_bad_login(self, client, customer_user):
        resp = client.post("/api/auth/login", json={"username": customer_user.username, "password": "Nope123!"})
        assert resp.status_code == 401

    def test_change_password_ends_session(self, client, customer_user, customer_headers):
        resp = client.post("/api/auth/change-password", json={
            "current_password": TEST_PASSWORD, "new_password": "Another456!",
        }, headers=customer_headers)
        assert resp.status_code == 200
        assert resp.json["sessions_revoked"] >= 1
        assert client.get("/api/auth/me", headers=customer_headers).status_code == 401
        assert get_auth_token(client, customer_user.username, "Another456!") is not None


class TestShoppingFlow:

    def test_checkout_fulfil_deliver(self, client, catalog_book, staff_headers):
        headers = _register(client)
        book_id = catalog_book["id"]

        resp = client.post("/api/cart", json={"book_id": book_id, "quantity": 2}, headers=headers)
        assert resp.status_code == 201
        assert client.get("/api/cart/count", headers=headers).json["count"] == 2

        resp = client.post("/api/orders", json={
            "shipping_address": "221B Baker St",
            "shipping_phone": "555-0199",
        }, headers=headers)
        assert resp.status_code == 201, resp.json
        order = resp.json["order"]
        assert order["status"] == "PENDING"
        assert order["total_amount_cents"] == 2500
        assert order["payment"]["method"] == "CASH_ON_DELIVERY"

        assert client.get(f"/api/books/{book_id}").json["book"]["stock_quantity"] == 3
        assert client.get("/api/cart", headers=headers).json["items"] == []

        listing = client.get("/api/orders", headers=headers).json["orders"]
        assert [o["id"] for o in listing] == [order["id"]]
        assert listing[0]["item_count"] == 2

        for status in ("PROCESSING", "PACKED", "SHIPPED", "DELIVERED"):
            resp = client.put(f"/api/admin/orders/{order['id']}/status", json={"status": status},
                              headers=staff_headers)
            assert resp.status_code == 200, (status, resp.json)

        detail = client.get(f"/api/orders/{order['id']}", headers=headers).json["order"]
        assert detail["status"] == "DELIVERED"
        assert detail["shipped_at"] is not None
        assert detail["delivered_at"] is not None

    def test_invalid_transition_is_409(self, client, catalog_book, customer_headers, staff_headers):
        client.post("/api/cart", json={"book_id": catalog_book["id"], "quantity": 1}, headers=customer_headers)
        order = client.post("/api/orders", json={"shipping_address": "x", "shipping_phone": "1"},
                            headers=customer_headers).json["order"]

        resp = client.put(f"/api/admin/orders/{order['id']}/status", json={"status": "DELIVERED"},
                          headers=staff_headers)
        assert resp.status_code == 409
        assert resp.json["code"] == "INVALID_TRANSITION"
        assert resp.json["details"] == {"from": "PENDING", "to": "DELIVERED"}

    def test_customer_cancel_restores_stock(self, client, catalog_book, customer_headers):
        client.post("/api/cart", json={"book_id": catalog_book["id"], "quantity": 5}, headers=customer_headers)
        order = client.post("/api/orders", json={"shipping_address": "x", "shipping_phone": "1"},
                            headers=customer_headers).json["order"]
        book = client.get(f"/api/books/{catalog_book['id']}").json["book"]
        assert book["stock_quantity"] == 0
        assert book["status"] == "OUT_OF_STOCK"

        resp = client.post(f"/api/orders/{order['id']}/cancel", headers=customer_headers)
        assert resp.status_code == 200
        assert resp.json["order"]["status"] == "CANCELLED"
        assert resp.json["order"]["payment"]["status"] == "FAILED"

        book = client.get(f"/api/books/{catalog_book['id']}").json["book"]
        assert book["stock_quantity"] == 5
        assert book["status"] == "AVAILABLE"

    def test_other_customer_cannot_see_order(self, client, catalog_book, customer_headers):
        client.post("/api/cart", json={"book_id": catalog_book["id"], "quantity": 1}, headers=customer_headers)
        order = client.post("/api/orders", json={"shipping_address": "x", "shipping_phone": "1"},
                            headers=customer_headers).json["order"]

        stranger = _register(client, "stranger")
        assert client.get(f"/api/orders/{order['id']}", headers=stranger).status_code == 404
        assert client.post(f"/api/orders/{order['id']}/cancel", headers=stranger).status_code == 403

    def test_empty_cart_checkout(self, client, customer_headers):
        resp = client.post("/api/orders", json={"shipping_address": "x", "shipping_phone": "1"},
                           headers=customer_headers)
        assert resp.status_code == 400
        assert resp.json["code"] == "EMPTY_CART"

    def test_cart_over_stock(self, client, catalog_book, customer_headers):
        resp = client.post("/api/cart", json={"book_id": catalog_book["id"], "quantity": 6},
                           headers=customer_headers)
        assert resp.status_code == 409
        assert resp.json["code"] == "INSUFFICIENT_STOCK"
        assert resp.json["details"]["book_id"] == catalog_book["id"]

    def test_checkout_missing_shipping(self, client, catalog_book, customer_headers):
        client.post("/api/cart", json={"book_id": catalog_book["id"], "quantity": 1}, headers=customer_headers)
        resp = client.post("/api/orders", json={"shipping_phone": "1"}, headers=customer_headers)
        assert resp.status_code == 400
        assert resp.json["code"] == "VALIDATION_ERROR"

    def test_wishlist_move_to_cart(self, client, catalog_book, customer_headers):
        book_id = catalog_book["id"]
        assert client.post("/api/wishlist", json={"book_id": book_id}, headers=customer_headers).status_code == 201
        assert client.post("/api/wishlist", json={"book_id": book_id}, headers=customer_headers).status_code == 409
        assert client.get(f"/api/wishlist/{book_id}", headers=customer_headers).json["in_wishlist"] is True

        resp = client.post(f"/api/wishlist/{book_id}/move-to-cart", json={"quantity": 2}, headers=customer_headers)
        assert resp.status_code == 200
        assert client.get(f"/api/wishlist/{book_id}", headers=customer_headers).json["in_wishlist"] is False
        assert client.get("/api/cart/count", headers=customer_headers).json["count"] == 2


class TestStaffFlows:

    def test_inventory_adjust_and_logs(self, client, catalog_book, staff_headers):
        book_id = catalog_book["id"]

        resp = client.put(f"/api/inventory/{book_id}", json={"quantity_change": 10, "reason": "Restock"},
                          headers=staff_headers)
        assert resp.status_code == 200, resp.json
        assert resp.json["book"]["stock_quantity"] == 15
        assert resp.json["log"]["quantity_after"] == 15

        resp = client.put(f"/api/inventory/{book_id}", json={"quantity_change": -20, "reason": "Oops"},
                          headers=staff_headers)
        assert resp.status_code == 409
        assert resp.json["code"] == "NEGATIVE_STOCK"

        logs = client.get(f"/api/inventory/logs?book_id={book_id}", headers=staff_headers).json["logs"]
        assert [log["reason"] for log in logs] == ["Restock", "Initial stock"]

    def test_inventory_adjust_validation(self, client, catalog_book, staff_headers):
        resp = client.put(f"/api/inventory/{catalog_book['id']}", json={"quantity_change": 0, "reason": "x"},
                          headers=staff_headers)
        assert resp.status_code == 400

    def test_low_stock(self, client, catalog_book, staff_headers):
        resp = client.get("/api/inventory/low-stock?threshold=10", headers=staff_headers)
        assert resp.status_code == 200
        assert [b["id"] for b in resp.json["books"]] == [catalog_book["id"]]
        assert resp.json["threshold"] == 10

    def test_payment_complete_and_statistics(self, client, catalog_book, customer_headers, staff_headers):
        client.post("/api/cart", json={"book_id": catalog_book["id"], "quantity": 2}, headers=customer_headers)
        order = client.post("/api/orders", json={"shipping_address": "x", "shipping_phone": "1"},
                            headers=customer_headers).json["order"]

        resp = client.post(f"/api/admin/orders/{order['id']}/payment/complete", json={"transaction_id": "T-1"},
                           headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["payment"]["status"] == "COMPLETED"

        stats = client.get("/api/admin/orders/statistics", headers=staff_headers).json
        assert stats["total_revenue_cents"] == 2500

        dashboard = client.get("/api/admin/dashboard", headers=staff_headers).json
        assert dashboard["revenue_today_cents"] == 2500

    def test_order_search(self, client, catalog_book, customer_user, customer_headers, staff_headers):
        client.post("/api/cart", json={"book_id": catalog_book["id"], "quantity": 1}, headers=customer_headers)
        order = client.post("/api/orders", json={"shipping_address": "x", "shipping_phone": "1"},
                            headers=customer_headers).json["order"]

        resp = client.get(f"/api/admin/orders?search={customer_user.email}", headers=staff_headers)
        assert [o["id"] for o in resp.json["orders"]] == [order["id"]]
        resp = client.get("/api/admin/orders?status=SHIPPED", headers=staff_headers)
        assert resp.json["orders"] == []
        assert client.get("/api/admin/orders?status=NOPE", headers=staff_headers).status_code == 400


class TestAdminFlows:

    def test_book_validation(self, client, admin_headers, catalog_book):
        resp = client.post("/api/admin/books", json={
            "isbn": "9780000000111", "title": "T", "author": "A",
            "price_cents": 0, "category_id": catalog_book["category_id"],
        }, headers=admin_headers)
        assert resp.status_code == 400

        resp = client.put(f"/api/admin/books/{catalog_book['id']}", json={"stock_quantity": 50},
                          headers=admin_headers)
        assert resp.status_code == 400

        resp = client.put(f"/api/admin/books/{catalog_book['id']}", json={"price_cents": 1999},
                          headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["book"]["price_cents"] == 1999

    def test_book_with_history_cannot_be_deleted(self, client, admin_headers, catalog_book):
        resp = client.delete(f"/api/admin/books/{catalog_book['id']}", headers=admin_headers)
        assert resp.status_code == 409

    def test_user_management(self, client, admin_headers):
        resp = client.post("/api/admin/users", json={
            "username": "clerk",
            "email": "clerk@bookstore.test",
            "password": TEST_PASSWORD,
            "full_name": "Clerk",
            "role": "STAFF",
        }, headers=admin_headers)
        assert resp.status_code == 201, resp.json
        user_id = resp.json["user"]["id"]

        clerk_headers = auth_headers(get_auth_token(client, "clerk"))
        assert client.get("/api/admin/orders", headers=clerk_headers).status_code == 200

        resp = client.put(f"/api/admin/users/{user_id}", json={"role": "CUSTOMER"}, headers=admin_headers)
        assert resp.status_code == 200
        # Role is read live on each request
        assert client.get("/api/admin/orders", headers=clerk_headers).status_code == 403

        resp = client.delete(f"/api/admin/users/{user_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["user"]["is_active"] is False
        assert client.get("/api/cart", headers=clerk_headers).status_code == 401

    def test_admin_cannot_deactivate_self(self, client, admin_user, admin_headers):
        resp = client.delete(f"/api/admin/users/{admin_user.id}", headers=admin_headers)
        assert resp.status_code == 400
