import logging

from fastapi import APIRouter, Depends, Query
from pymongo.errors import DuplicateKeyError

from bookstore.database import (
    collection,
    create_document,
    delete_document,
    get_document_by_id,
    paginate,
    serialize,
    to_object_id,
    update_document,
)
from bookstore.errors import ConflictError, NotFoundError
from bookstore.schemas import Review, ReviewCreate, ReviewUpdate
from bookstore.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["reviews"])


def refresh_book_rating(book_id: str):
    """Recompute rating_avg and rating_count on the book from its reviews"""
    pipeline = [
        {"$match": {"book_id": book_id}},
        {"$group": {"_id": None, "avg": {"$avg": "$rating"}, "count": {"$sum": 1}}},
    ]
    agg = list(collection("review").aggregate(pipeline))
    if agg and agg[0]["count"]:
        rating_avg, rating_count = round(float(agg[0]["avg"]), 1), int(agg[0]["count"])
    else:
        rating_avg, rating_count = 0.0, 0
    update_document("book", book_id, {"rating_avg": rating_avg, "rating_count": rating_count})


def _with_authors(reviews):
    ids = [to_object_id(r["user_id"]) for r in reviews]
    names = {str(u["_id"]): u.get("name") for u in collection("user").find({"_id": {"$in": [i for i in ids if i]}})}
    return [{**serialize(r), "user": {"id": r["user_id"], "name": names.get(r["user_id"])}} for r in reviews]


def _owned_review_or_404(review_id: str, user_id: str) -> dict:
    review = get_document_by_id("review", review_id, {"user_id": user_id})
    if not review:
        raise NotFoundError("Review not found")
    return review


@router.post("/{book_id}", status_code=201)
def create_review(book_id: str, payload: ReviewCreate, current=Depends(get_current_user)):
    book = get_document_by_id("book", book_id)
    if not book:
        raise NotFoundError("Book not found")
    book_id = str(book["_id"])
    review = Review(book_id=book_id, user_id=current["id"], **payload.model_dump())
    try:
        review_id = create_document("review", review)
    except DuplicateKeyError:
        raise ConflictError("You have already reviewed this book")
    refresh_book_rating(book_id)
    return _with_authors([get_document_by_id("review", review_id)])[0]


@router.put("/{review_id}")
def update_review(review_id: str, payload: ReviewUpdate, current=Depends(get_current_user)):
    review = _owned_review_or_404(review_id, current["id"])
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if changes:
        update_document("review", review_id, changes)
        if "rating" in changes:
            refresh_book_rating(review["book_id"])
    return _with_authors([get_document_by_id("review", review_id)])[0]


@router.delete("/{review_id}")
def delete_review(review_id: str, current=Depends(get_current_user)):
    review = _owned_review_or_404(review_id, current["id"])
    delete_document("review", review_id, {"user_id": current["id"]})
    refresh_book_rating(review["book_id"])
    return {"message": "Review deleted successfully"}


@router.get("/book/{book_id}")
def list_book_reviews(
    book_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    reviews, total, total_pages = paginate("review", {"book_id": book_id}, page, limit)
    return {
        "reviews": _with_authors(reviews),
        "total": total,
        "total_pages": total_pages,
        "current_page": page,
    }
