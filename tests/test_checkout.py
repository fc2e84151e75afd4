import pytest

from bookstore import checkout
from bookstore.errors import InsufficientStockError, InvalidTransitionError, NotFoundError
from bookstore.schemas import OrderCreate, OrderItem

ADDRESS = {
    "street": "12 Mall Road",
    "city": "Amritsar",
    "state": "Punjab",
    "zip_code": "143001",
    "country": "India",
}

USER_ID = "64b7f0c2a1b2c3d4e5f60718"


def cart(*lines, payment_method="upi"):
    return OrderCreate(
        items=[{"book_id": book_id, "quantity": qty} for book_id, qty in lines],
        payment_method=payment_method,
        shipping_address=ADDRESS,
    )


def test_compute_totals_flat_tax_and_shipping():
    items = [OrderItem(book_id="a", title="A", price=100, quantity=2)]
    assert checkout.compute_totals(items, tax_rate=0.18, shipping=50) == {
        "subtotal": 200.0,
        "tax": 36.0,
        "shipping": 50.0,
        "total": 286.0,
    }


def test_compute_totals_rounds_tax_to_cents():
    items = [
        OrderItem(book_id="a", title="A", price=19.99, quantity=3),
        OrderItem(book_id="b", title="B", price=7.45, quantity=1),
    ]
    totals = checkout.compute_totals(items, tax_rate=0.18, shipping=50)
    assert totals["subtotal"] == 67.42
    assert totals["tax"] == round(67.42 * 0.18, 2)
    assert totals["total"] == round(totals["subtotal"] + totals["tax"] + totals["shipping"], 2)


def test_place_order_uses_stored_prices_and_decrements_stock(make_book, stock_of, db):
    a = make_book("A", price=100, stock=5)
    b = make_book("B", price=50, stock=3)

    order = checkout.place_order(USER_ID, cart((a, 2), (b, 1)))

    assert order["subtotal"] == 250.0
    assert order["tax"] == 45.0
    assert order["shipping"] == 50.0
    assert order["total"] == 345.0
    assert order["status"] == "pending"
    assert order["payment_info"] == {"method": "upi", "status": "pending", "transaction_id": None}
    assert [(i["book_id"], i["title"], i["price"], i["quantity"]) for i in order["items"]] == [
        (a, "A", 100.0, 2),
        (b, "B", 50.0, 1),
    ]
    assert order["items"][0]["book"]["id"] == a
    assert stock_of(a) == 3
    assert stock_of(b) == 2
    assert db["order"].count_documents({}) == 1


def test_missing_book_aborts_without_touching_stock(make_book, stock_of, db):
    a = make_book("A", stock=5)
    missing = "64b7f0c2a1b2c3d4e5f6ffff"

    with pytest.raises(NotFoundError) as exc:
        checkout.place_order(USER_ID, cart((a, 1), (missing, 1)))

    assert missing in exc.value.message
    assert stock_of(a) == 5
    assert db["order"].count_documents({}) == 0


def test_malformed_book_id_is_not_found(db):
    with pytest.raises(NotFoundError):
        checkout.place_order(USER_ID, cart(("not-an-id", 1)))


def test_insufficient_stock_names_book_and_keeps_earlier_lines(make_book, stock_of, db):
    a = make_book("A", price=100, stock=5)
    b = make_book("B", price=50, stock=0)

    with pytest.raises(InsufficientStockError) as exc:
        checkout.place_order(USER_ID, cart((a, 2), (b, 1)))

    assert exc.value.message == "Insufficient stock for B"
    assert stock_of(a) == 5
    assert db["order"].count_documents({}) == 0


def test_repeated_book_in_cart_cannot_oversell(make_book, stock_of, db):
    a = make_book("A", stock=5)

    # Each line passes validation alone; the second conditional decrement fails
    with pytest.raises(InsufficientStockError):
        checkout.place_order(USER_ID, cart((a, 3), (a, 3)))

    assert stock_of(a) == 5
    assert db["order"].count_documents({}) == 0


def test_failed_order_insert_restores_stock(make_book, stock_of, db, monkeypatch):
    a = make_book("A", stock=5)
    b = make_book("B", stock=4)

    def broken_insert(collection_name, data):
        raise RuntimeError("write failed")

    monkeypatch.setattr(checkout, "create_document", broken_insert)

    with pytest.raises(RuntimeError):
        checkout.place_order(USER_ID, cart((a, 2), (b, 4)))

    assert stock_of(a) == 5
    assert stock_of(b) == 4
    assert db["order"].count_documents({}) == 0


def test_snapshot_survives_catalog_changes(make_book, db):
    a = make_book("Original Title", price=100, stock=5)
    order = checkout.place_order(USER_ID, cart((a, 1)))

    db["book"].update_one({"title": "Original Title"}, {"$set": {"title": "Renamed", "price": 999}})

    first = checkout.get_user_order(order["id"], USER_ID)
    second = checkout.get_user_order(order["id"], USER_ID)
    snapshot = [{k: i[k] for k in ("book_id", "title", "price", "quantity")} for i in first["items"]]
    assert snapshot == [{"book_id": a, "title": "Original Title", "price": 100.0, "quantity": 1}]
    assert [{k: i[k] for k in ("book_id", "title", "price", "quantity")} for i in second["items"]] == snapshot
    assert first["items"][0]["book"]["title"] == "Renamed"


def test_deleted_book_expands_to_none(make_book, db):
    a = make_book("A", stock=5)
    order = checkout.place_order(USER_ID, cart((a, 1)))
    db["book"].delete_many({})

    fetched = checkout.get_user_order(order["id"], USER_ID)
    assert fetched["items"][0]["book"] is None
    assert fetched["items"][0]["title"] == "A"


def test_other_users_order_is_not_found(make_book, db):
    a = make_book("A", stock=5)
    order = checkout.place_order(USER_ID, cart((a, 1)))

    with pytest.raises(NotFoundError):
        checkout.get_user_order(order["id"], "64b7f0c2a1b2c3d4e5f60000")


def test_status_transitions_follow_table(make_book, db):
    a = make_book("A", stock=5)
    order = checkout.place_order(USER_ID, cart((a, 1)))

    assert checkout.update_order_status(order["id"], "processing")["status"] == "processing"
    with pytest.raises(InvalidTransitionError):
        checkout.update_order_status(order["id"], "delivered")
    assert checkout.update_order_status(order["id"], "shipped")["status"] == "shipped"
    assert checkout.update_order_status(order["id"], "delivered")["status"] == "delivered"
    with pytest.raises(InvalidTransitionError):
        checkout.update_order_status(order["id"], "cancelled")


def test_cancelling_restores_stock(make_book, stock_of, db):
    a = make_book("A", stock=5)
    order = checkout.place_order(USER_ID, cart((a, 2)))
    assert stock_of(a) == 3

    checkout.update_order_status(order["id"], "cancelled")

    assert stock_of(a) == 5
    with pytest.raises(InvalidTransitionError):
        checkout.update_order_status(order["id"], "pending")


def test_list_user_orders_newest_first_and_paginated(make_book, db):
    a = make_book("A", stock=10)
    ids = [checkout.place_order(USER_ID, cart((a, 1)))["id"] for _ in range(3)]
    checkout.place_order("64b7f0c2a1b2c3d4e5f60000", cart((a, 1)))

    page = checkout.list_user_orders(USER_ID, page=1, limit=2)
    assert page["total"] == 3
    assert page["total_pages"] == 2
    assert [o["id"] for o in page["orders"]] == [ids[2], ids[1]]

    rest = checkout.list_user_orders(USER_ID, page=2, limit=2)
    assert [o["id"] for o in rest["orders"]] == [ids[0]]


def test_cancelling_shipped_order_keeps_stock_taken(make_book, stock_of, db):
    a = make_book("A", stock=5)
    order = checkout.place_order(USER_ID, cart((a, 2)))
    checkout.update_order_status(order["id"], "processing")
    checkout.update_order_status(order["id"], "shipped")

    assert checkout.update_order_status(order["id"], "cancelled")["status"] == "cancelled"
    assert stock_of(a) == 3


def test_cancelling_processing_order_restores_stock(make_book, stock_of, db):
    a = make_book("A", stock=5)
    order = checkout.place_order(USER_ID, cart((a, 2)))
    checkout.update_order_status(order["id"], "processing")

    checkout.update_order_status(order["id"], "cancelled")
    assert stock_of(a) == 5
