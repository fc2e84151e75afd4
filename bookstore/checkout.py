"""
Order workflow

Checkout turns a cart of (book id, quantity) pairs into an order:

1. Every line is validated in cart order: the book must exist and hold
   enough stock. Nothing is written until the whole cart passes.
2. Prices come from the stored books, never from the client.
3. Stock is taken line by line with an atomic conditional decrement
   (only when stock >= quantity). If a decrement or the order insert fails,
   every decrement already applied for this checkout is put back before the
   error propagates, so a failed checkout leaves stock untouched.
4. The order stores a snapshot of each line (id, title, unit price,
   quantity) that later catalog edits never change.
"""

import logging
from typing import Dict, List, Optional

from pymongo import ReturnDocument

from bookstore import config
from bookstore.database import (
    NEWEST_FIRST,
    collection,
    create_document,
    get_document_by_id,
    now,
    paginate,
    serialize,
    to_object_id,
)
from bookstore.errors import (
    ConflictError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
)
from bookstore.metrics import order_transitions_total, orders_total, revenue_total, stock_restored_total
from bookstore.schemas import Order, OrderCreate, OrderItem, PaymentInfo

logger = logging.getLogger(__name__)

ORDER_TRANSITIONS = {
    "pending": {"processing", "cancelled"},
    "processing": {"shipped", "cancelled"},
    "shipped": {"delivered", "cancelled"},
    "delivered": set(),
    "cancelled": set(),
}

# Goods still in the warehouse; a shipped order keeps its stock taken when cancelled
RESTOCK_ON_CANCEL = {"pending", "processing"}


def compute_totals(items: List[OrderItem], tax_rate: Optional[float] = None, shipping: Optional[float] = None) -> Dict[str, float]:
    """Subtotal, flat-rate tax, flat shipping and grand total for a set of lines"""
    tax_rate = config.TAX_RATE if tax_rate is None else tax_rate
    shipping = config.SHIPPING_COST if shipping is None else shipping
    subtotal = round(sum(item.price * item.quantity for item in items), 2)
    tax = round(subtotal * tax_rate, 2)
    total = round(subtotal + tax + shipping, 2)
    return {"subtotal": subtotal, "tax": tax, "shipping": round(shipping, 2), "total": total}


def _snapshot_lines(order: OrderCreate) -> List[OrderItem]:
    lines = []
    for item in order.items:
        book = get_document_by_id("book", item.book_id)
        if not book:
            raise NotFoundError(f"Book not found: {item.book_id}")
        if book.get("stock", 0) < item.quantity:
            raise InsufficientStockError(book["title"], item.book_id)
        lines.append(OrderItem(
            book_id=str(book["_id"]),
            title=book["title"],
            price=book["price"],
            quantity=item.quantity,
        ))
    return lines


def _take_stock(line: OrderItem):
    book = collection("book").find_one_and_update(
        {"_id": to_object_id(line.book_id), "stock": {"$gte": line.quantity}},
        {"$inc": {"stock": -line.quantity}, "$set": {"updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    if book is None:
        if get_document_by_id("book", line.book_id) is None:
            raise NotFoundError(f"Book not found: {line.book_id}")
        raise InsufficientStockError(line.title, line.book_id)


def _restore_stock(lines: List[OrderItem], reason: str):
    for line in lines:
        result = collection("book").update_one(
            {"_id": to_object_id(line.book_id)},
            {"$inc": {"stock": line.quantity}, "$set": {"updated_at": now()}},
        )
        if result.matched_count:
            stock_restored_total.labels(reason=reason).inc()
        else:
            logger.warning("Book %s no longer exists, %d units not restocked", line.book_id, line.quantity)


def expand_items(order: dict) -> dict:
    """Serialize an order, attaching the current book record to every line"""
    doc = serialize(order)
    ids = [to_object_id(item["book_id"]) for item in doc["items"]]
    books = {str(b["_id"]): serialize(b) for b in collection("book").find({"_id": {"$in": [i for i in ids if i]}})}
    doc["items"] = [{**item, "book": books.get(item["book_id"])} for item in doc["items"]]
    return doc


def place_order(user_id: str, order: OrderCreate) -> dict:
    try:
        lines = _snapshot_lines(order)
    except (NotFoundError, InsufficientStockError) as exc:
        orders_total.labels(status='rejected').inc()
        logger.info("Order rejected for user %s: %s", user_id, exc.message)
        raise

    totals = compute_totals(lines)
    taken: List[OrderItem] = []
    try:
        for line in lines:
            _take_stock(line)
            taken.append(line)
        record = Order(
            user_id=user_id,
            items=lines,
            payment_info=PaymentInfo(method=order.payment_method),
            shipping_address=order.shipping_address,
            status="pending",
            **totals,
        )
        order_id = create_document("order", record)
    except Exception as exc:
        if taken:
            logger.warning("Checkout for user %s failed after taking stock, restoring %d lines", user_id, len(taken))
            _restore_stock(taken, reason='checkout_failed')
        orders_total.labels(status='failed').inc()
        logger.info("Order failed for user %s: %s", user_id, exc)
        raise

    orders_total.labels(status='placed').inc()
    revenue_total.inc(totals["total"])
    logger.info("Order %s placed by user %s, total %.2f", order_id, user_id, totals["total"])
    return expand_items(get_document_by_id("order", order_id))


def list_user_orders(user_id: str, page: int = 1, limit: int = 10) -> dict:
    orders, total, total_pages = paginate("order", {"user_id": user_id}, page, limit, sort=NEWEST_FIRST)
    return {
        "orders": [expand_items(o) for o in orders],
        "total": total,
        "total_pages": total_pages,
        "current_page": page,
    }


def get_user_order(order_id: str, user_id: str) -> dict:
    # Other users' orders are reported as missing, not forbidden
    order = get_document_by_id("order", order_id, {"user_id": user_id})
    if not order:
        raise NotFoundError("Order not found")
    return expand_items(order)


def list_all_orders(page: int = 1, limit: int = 10, status: Optional[str] = None) -> dict:
    query = {"status": status} if status else {}
    orders, total, total_pages = paginate("order", query, page, limit, sort=NEWEST_FIRST)
    user_ids = {to_object_id(o["user_id"]) for o in orders}
    users = {
        str(u["_id"]): {"name": u.get("name"), "email": u.get("email")}
        for u in collection("user").find({"_id": {"$in": [u for u in user_ids if u]}})
    }
    data = []
    for o in orders:
        doc = serialize(o)
        doc["customer"] = users.get(o["user_id"])
        data.append(doc)
    return {"data": data, "total": total, "total_pages": total_pages, "current_page": page}


def update_order_status(order_id: str, status: str) -> dict:
    order = get_document_by_id("order", order_id)
    if not order:
        raise NotFoundError("Order not found")
    current = order["status"]
    if status == current:
        return serialize(order)
    if status not in ORDER_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(current, status)

    result = collection("order").update_one(
        {"_id": order["_id"], "status": current},
        {"$set": {"status": status, "updated_at": now()}},
    )
    if not result.matched_count:
        raise ConflictError("Order status was changed by another request")

    if status == "cancelled" and current in RESTOCK_ON_CANCEL:
        _restore_stock([OrderItem(**item) for item in order["items"]], reason="order_cancelled")
    order_transitions_total.labels(status=status).inc()
    logger.info("Order %s moved from %s to %s", order_id, current, status)
    return serialize(get_document_by_id("order", order_id))
