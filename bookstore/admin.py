import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import Response

from bookstore import bulk_import, checkout
from bookstore.database import (
    NEWEST_FIRST,
    collection,
    get_document_by_id,
    get_documents,
    paginate,
    serialize,
    update_document,
)
from bookstore.errors import InvalidRequestError, NotFoundError
from bookstore.schemas import BulkImportPayload, ImportResult, OrderStatus, OrderStatusUpdate, RoleUpdate
from bookstore.security import get_current_admin, public_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(get_current_admin)])


def _revenue(match: dict) -> float:
    pipeline = [
        {"$match": match},
        {"$group": {"_id": None, "sum": {"$sum": "$total"}}},
    ]
    agg = list(collection("order").aggregate(pipeline))
    return round(float(agg[0]["sum"] or 0), 2) if agg else 0.0


# ------------------------- Dashboard Widgets ------------------
@router.get("/stats")
def get_admin_stats():
    orders = collection("order")
    recent = get_documents("order", sort=NEWEST_FIRST, limit=5)
    return {
        "total_books": collection("book").count_documents({}),
        "total_users": collection("user").count_documents({}),
        "total_orders": orders.count_documents({}),
        "pending_orders": orders.count_documents({"status": "pending"}),
        "total_revenue": _revenue({"status": {"$ne": "cancelled"}}),
        "recent_orders": [serialize(o) for o in recent],
    }


# ------------------------- Orders -----------------------------
@router.get("/orders")
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[OrderStatus] = None,
):
    return checkout.list_all_orders(page, limit, status)


@router.patch("/orders/{order_id}/status")
def update_order_status(order_id: str, payload: OrderStatusUpdate):
    return checkout.update_order_status(order_id, payload.status)


# ------------------------- Users ------------------------------
@router.get("/users")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
):
    query = {}
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"name": pattern}, {"email": pattern}]
    users, total, total_pages = paginate("user", query, page, limit)
    return {
        "data": [public_user(u) for u in users],
        "total": total,
        "total_pages": total_pages,
        "current_page": page,
    }


@router.patch("/users/{user_id}/suspend")
def toggle_suspend(user_id: str, current=Depends(get_current_admin)):
    if user_id == current["id"]:
        raise InvalidRequestError("You cannot suspend your own account")
    user = get_document_by_id("user", user_id)
    if not user:
        raise NotFoundError("User not found")
    new_status = "active" if user.get("status") == "suspended" else "suspended"
    changes = {"status": new_status}
    if new_status == "suspended":
        changes["refresh_sessions"] = []
    update_document("user", user_id, changes)
    logger.info("User %s is now %s", user_id, new_status)
    return public_user(get_document_by_id("user", user_id))


@router.patch("/users/{user_id}/role")
def update_user_role(user_id: str, payload: RoleUpdate, current=Depends(get_current_admin)):
    if user_id == current["id"] and payload.role != "admin":
        raise InvalidRequestError("You cannot remove your own admin role")
    if not update_document("user", user_id, {"role": payload.role}):
        raise NotFoundError("User not found")
    return public_user(get_document_by_id("user", user_id))


# ------------------------- Bulk import ------------------------
@router.post("/bulk-import/{kind}", response_model=ImportResult)
def bulk_import_file(kind: str, file: UploadFile = File(...)):
    return bulk_import.import_upload(kind, file)


@router.post("/bulk-import-json/{kind}", response_model=ImportResult)
def bulk_import_json(kind: str, payload: BulkImportPayload):
    return bulk_import.import_json(kind, payload.data)


@router.get("/template/{kind}")
def download_template(kind: str):
    filename, content = bulk_import.get_template(kind)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
