from fastapi import APIRouter

from bookstore.database import collection

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/stats")
def get_public_stats():
    revenue = list(collection("order").aggregate([
        {"$group": {"_id": None, "total": {"$sum": "$total"}}}
    ]))
    rating = list(collection("book").aggregate([
        {"$match": {"rating_avg": {"$gt": 0}}},
        {"$group": {"_id": None, "avg": {"$avg": "$rating_avg"}}}
    ]))
    return {
        "total_books": collection("book").count_documents({}),
        "total_users": collection("user").count_documents({}),
        "total_orders": collection("order").count_documents({}),
        "total_revenue": round(float(revenue[0]["total"] or 0), 2) if revenue else 0.0,
        "avg_rating": round(float(rating[0]["avg"]), 1) if rating and rating[0]["avg"] is not None else 0.0,
    }
