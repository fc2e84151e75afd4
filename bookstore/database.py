"""
Database Helper Functions

MongoDB helper functions used by the routers and services.
Documents are stored one per record; references between records
(user_id, book_id) are kept as id strings.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Union, Optional, Dict, Any, List, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

from bookstore import config
from bookstore.errors import DatabaseUnavailableError

logger = logging.getLogger(__name__)

_client = None
db = None

NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


def connect(database_url: str, database_name: str):
    global _client, db
    _client = MongoClient(database_url)
    db = _client[database_name]
    return db


if config.DATABASE_URL and config.DATABASE_NAME:
    connect(config.DATABASE_URL, config.DATABASE_NAME)


def _ensure_db():
    if db is None:
        raise DatabaseUnavailableError()


def collection(name: str):
    _ensure_db()
    return db[name]


def now() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(doc_id: Any) -> Optional[ObjectId]:
    """Parse an id string, returning None for anything that is not an ObjectId"""
    if isinstance(doc_id, ObjectId):
        return doc_id
    try:
        return ObjectId(doc_id)
    except (InvalidId, TypeError):
        return None


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Replace the Mongo _id with a string id"""
    if doc is None:
        return None
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    return doc


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a single document with timestamp"""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()

    stamp = now()
    data_dict['created_at'] = stamp
    data_dict['updated_at'] = stamp

    result = collection(collection_name).insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[dict] = None,
    limit: Optional[int] = None,
    sort: Optional[list] = None,
    skip: int = 0,
    projection: Optional[dict] = None,
) -> List[Dict[str, Any]]:
    """Get documents from collection"""
    cursor = collection(collection_name).find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(sort)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def get_document_by_id(collection_name: str, doc_id: str, extra_filter: Optional[dict] = None) -> Optional[Dict[str, Any]]:
    """Get a single document by _id string"""
    oid = to_object_id(doc_id)
    if oid is None:
        return None
    query = {"_id": oid}
    if extra_filter:
        query.update(extra_filter)
    return collection(collection_name).find_one(query)


def update_document(collection_name: str, doc_id: str, data: dict, extra_filter: Optional[dict] = None) -> bool:
    """Update a document by id with $set and updated_at. Returns whether it matched."""
    oid = to_object_id(doc_id)
    if oid is None:
        return False
    query = {"_id": oid}
    if extra_filter:
        query.update(extra_filter)
    data = data.copy()
    data['updated_at'] = now()
    res = collection(collection_name).update_one(query, {"$set": data})
    return res.matched_count > 0


def delete_document(collection_name: str, doc_id: str, extra_filter: Optional[dict] = None) -> bool:
    """Delete a document by id"""
    oid = to_object_id(doc_id)
    if oid is None:
        return False
    query = {"_id": oid}
    if extra_filter:
        query.update(extra_filter)
    res = collection(collection_name).delete_one(query)
    return res.deleted_count > 0


def paginate(
    collection_name: str,
    filter_dict: Optional[dict] = None,
    page: int = 1,
    limit: int = 10,
    sort: Optional[list] = None,
    projection: Optional[dict] = None,
) -> Tuple[List[Dict[str, Any]], int, int]:
    """Return (documents, total, total_pages) for one page of a query"""
    filter_dict = filter_dict or {}
    total = collection(collection_name).count_documents(filter_dict)
    docs = get_documents(
        collection_name,
        filter_dict,
        limit=limit,
        sort=sort or NEWEST_FIRST,
        skip=(page - 1) * limit,
        projection=projection,
    )
    return docs, total, math.ceil(total / limit) if limit else 0


def ensure_indexes():
    collection("user").create_index("email", unique=True)
    collection("category").create_index("name", unique=True)
    collection("book").create_index("categories")
    collection("book").create_index("title")
    collection("review").create_index([("book_id", ASCENDING), ("user_id", ASCENDING)], unique=True)
    collection("order").create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    collection("order").create_index("status")
    logger.debug("Indexes ensured on %s", db.name)
