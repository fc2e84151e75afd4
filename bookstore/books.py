import logging
import re
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pymongo import ASCENDING, DESCENDING

from bookstore.categories import ensure_categories_exist
from bookstore.database import (
    collection,
    create_document,
    delete_document,
    get_document_by_id,
    paginate,
    serialize,
    update_document,
)
from bookstore.errors import NotFoundError
from bookstore.schemas import Book, BookCreate, BookUpdate
from bookstore.security import get_current_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/books", tags=["books"])

SortKey = Literal["created_at", "price", "title", "rating_avg"]


def get_book_or_404(book_id: str) -> dict:
    book = get_document_by_id("book", book_id)
    if not book:
        raise NotFoundError("Book not found")
    return book


@router.get("")
def list_books(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[str] = None,
    sort: SortKey = "created_at",
    order: Literal["asc", "desc"] = "desc",
):
    query = {}
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"title": pattern}, {"authors": pattern}, {"description": pattern}]
    if category:
        query["categories"] = category
    direction = DESCENDING if order == "desc" else ASCENDING
    books, total, total_pages = paginate("book", query, page, limit, sort=[(sort, direction), ("_id", direction)])
    return {
        "books": [serialize(b) for b in books],
        "total": total,
        "total_pages": total_pages,
        "current_page": page,
    }


@router.get("/meta/categories")
def list_book_categories():
    return sorted(collection("book").distinct("categories"))


@router.get("/{book_id}")
def get_book(book_id: str):
    return serialize(get_book_or_404(book_id))


@router.post("", status_code=201, dependencies=[Depends(get_current_admin)])
def create_book(payload: BookCreate):
    ensure_categories_exist(payload.categories)
    new_id = create_document("book", Book(**payload.model_dump()))
    logger.info("Created book %s (%s)", new_id, payload.title)
    return serialize(get_document_by_id("book", new_id))


@router.put("/{book_id}", dependencies=[Depends(get_current_admin)])
def update_book(book_id: str, payload: BookUpdate):
    get_book_or_404(book_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "categories" in changes:
        ensure_categories_exist(changes["categories"])
    if changes:
        update_document("book", book_id, changes)
    return serialize(get_book_or_404(book_id))


@router.delete("/{book_id}", dependencies=[Depends(get_current_admin)])
def delete_book(book_id: str):
    if not delete_document("book", book_id):
        raise NotFoundError("Book not found")
    # Orders keep their own snapshots; only reviews go with the book
    removed = collection("review").delete_many({"book_id": book_id}).deleted_count
    logger.info("Deleted book %s and %d reviews", book_id, removed)
    return {"message": "Book deleted successfully"}
