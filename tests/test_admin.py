from bookstore import config

ADDRESS = {"street": "1 Lane", "city": "Pune", "state": "MH", "zip_code": "411001", "country": "India"}


def place(client, headers, book_id, quantity=1):
    body = {"items": [{"book_id": book_id, "quantity": quantity}], "payment_method": "cod", "shipping_address": dict(ADDRESS)}
    r = client.post("/orders", json=body, headers=headers)
    assert r.status_code == 201
    return r.json()


def test_admin_routes_reject_regular_users(client, user_headers):
    r = client.get("/admin/stats", headers=user_headers)
    assert r.status_code == 403
    assert r.json() == {"message": "Admins only"}


def test_stats_count_revenue_without_cancelled(client, admin_headers, user_headers, make_book):
    book_id = make_book("A", price=100, stock=10)
    kept = place(client, user_headers, book_id, 2)
    dropped = place(client, user_headers, book_id, 1)
    client.patch(f"/admin/orders/{dropped['id']}/status", json={"status": "cancelled"}, headers=admin_headers)

    stats = client.get("/admin/stats", headers=admin_headers).json()

    assert stats["total_books"] == 1
    assert stats["total_users"] == 2
    assert stats["total_orders"] == 2
    assert stats["pending_orders"] == 1
    assert stats["total_revenue"] == kept["total"]
    assert [o["id"] for o in stats["recent_orders"]] == [dropped["id"], kept["id"]]


def test_admin_order_listing_and_status_flow(client, admin_headers, register, bearer, make_book, stock_of):
    book_id = make_book("A", price=100, stock=10)
    headers = bearer(register("Buyer", "buyer@example.com")["access_token"])
    order = place(client, headers, book_id, 3)

    listing = client.get("/admin/orders", headers=admin_headers).json()
    assert listing["total"] == 1
    assert listing["data"][0]["customer"] == {"name": "Buyer", "email": "buyer@example.com"}

    url = f"/admin/orders/{order['id']}/status"
    assert client.patch(url, json={"status": "shipped"}, headers=admin_headers).status_code == 400
    assert client.patch(url, json={"status": "processing"}, headers=admin_headers).json()["status"] == "processing"
    assert client.patch(url, json={"status": "bogus"}, headers=admin_headers).status_code == 400

    assert client.get("/admin/orders", params={"status": "pending"}, headers=admin_headers).json()["total"] == 0
    assert client.get("/admin/orders", params={"status": "processing"}, headers=admin_headers).json()["total"] == 1

    r = client.patch(url, json={"status": "cancelled"}, headers=admin_headers)
    assert r.json()["status"] == "cancelled"
    assert stock_of(book_id) == 10

    r = client.patch(url, json={"status": "processing"}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "Cannot change order status from cancelled to processing"


def test_status_update_for_missing_order(client, admin_headers):
    r = client.patch("/admin/orders/64b7f0c2a1b2c3d4e5f6ffff/status", json={"status": "processing"}, headers=admin_headers)
    assert r.status_code == 404


def test_suspend_blocks_login_and_existing_tokens(client, admin_headers, register, bearer):
    tokens = register("Sus", "sus@example.com", "secret123")
    user_id = tokens["user"]["id"]

    r = client.patch(f"/admin/users/{user_id}/suspend", headers=admin_headers)
    assert r.json()["status"] == "suspended"

    assert client.post("/auth/login", json={"email": "sus@example.com", "password": "secret123"}).status_code == 403
    assert client.get("/auth/me", headers=bearer(tokens["access_token"])).status_code == 403
    assert client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).status_code == 401

    r = client.patch(f"/admin/users/{user_id}/suspend", headers=admin_headers)
    assert r.json()["status"] == "active"
    assert client.post("/auth/login", json={"email": "sus@example.com", "password": "secret123"}).status_code == 200


def test_admin_cannot_suspend_self(client, admin_headers):
    me = client.get("/auth/me", headers=admin_headers).json()["user"]
    r = client.patch(f"/admin/users/{me['id']}/suspend", headers=admin_headers)
    assert r.status_code == 400


def test_list_users_with_search_and_role_change(client, admin_headers, register):
    target = register("Harleen", "harleen@example.com")["user"]
    register("Other", "other@example.com")

    r = client.get("/admin/users", params={"search": "harl"}, headers=admin_headers)
    body = r.json()
    assert body["total"] == 1
    assert body["data"][0]["email"] == "harleen@example.com"
    assert "password_hash" not in body["data"][0]

    r = client.patch(f"/admin/users/{target['id']}/role", json={"role": "admin"}, headers=admin_headers)
    assert r.json()["role"] == "admin"


def test_default_admin_is_created_once(client, db):
    assert db["user"].count_documents({"email": config.ADMIN_EMAIL}) == 1


def test_public_stats(client, user_headers, make_book, db):
    book_id = make_book("A", price=100, stock=10)
    make_book("B")
    db["book"].update_one({"title": "A"}, {"$set": {"rating_avg": 4.0}})
    db["book"].update_one({"title": "B"}, {"$set": {"rating_avg": 3.0}})
    order = place(client, user_headers, book_id, 1)

    stats = client.get("/public/stats").json()

    assert stats == {
        "total_books": 2,
        "total_users": 2,
        "total_orders": 1,
        "total_revenue": order["total"],
        "avg_rating": 3.5,
    }


def test_root_test_and_metrics(client, user_headers, make_book):
    assert client.get("/").json() == {"message": "Bookstore API"}
    assert client.get("/test").json()["connection_status"] == "Connected"
    place(client, user_headers, make_book("A"))
    assert "bookstore_orders_total" in client.get("/metrics").text


def test_public_stats_without_ratings_or_orders(client, make_book):
    make_book("Unrated")
    stats = client.get("/public/stats").json()
    assert stats["avg_rating"] == 0.0
    assert stats["total_revenue"] == 0.0
