from fastapi import APIRouter, Depends, Query

from bookstore import checkout
from bookstore.schemas import OrderCreate
from bookstore.security import get_current_user

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", status_code=201)
def create_order(payload: OrderCreate, current=Depends(get_current_user)):
    return checkout.place_order(current["id"], payload)


@router.get("")
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current=Depends(get_current_user),
):
    return checkout.list_user_orders(current["id"], page, limit)


@router.get("/{order_id}")
def get_order(order_id: str, current=Depends(get_current_user)):
    return checkout.get_user_order(order_id, current["id"])
