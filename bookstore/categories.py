import logging
from typing import Iterable

from fastapi import APIRouter, Depends
from pymongo.errors import DuplicateKeyError

from bookstore.database import (
    collection,
    create_document,
    delete_document,
    get_document_by_id,
    get_documents,
    serialize,
    update_document,
)
from bookstore.errors import ConflictError, InvalidRequestError, NotFoundError
from bookstore.schemas import Category, CategoryUpdate
from bookstore.security import get_current_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/categories", tags=["categories"], dependencies=[Depends(get_current_admin)])


def count_books_in_category(name: str) -> int:
    # Books reference categories by name, so usage is a scan over book.categories
    return collection("book").count_documents({"categories": name})


def ensure_categories_exist(names: Iterable[str]):
    names = list(names)
    known = set(collection("category").distinct("name", {"name": {"$in": names}}))
    for name in names:
        if name not in known:
            raise InvalidRequestError(f"Unknown category: {name}")


def insert_category(category: Category) -> str:
    try:
        return create_document("category", category)
    except DuplicateKeyError:
        raise ConflictError(f'Category "{category.name}" already exists')


@router.get("")
def list_categories():
    categories = get_documents("category", sort=[("name", 1)])
    return [{**serialize(c), "book_count": count_books_in_category(c["name"])} for c in categories]


@router.post("", status_code=201)
def create_category(payload: Category):
    new_id = insert_category(payload)
    return serialize(get_document_by_id("category", new_id))


@router.put("/{category_id}")
def update_category(category_id: str, payload: CategoryUpdate):
    category = get_document_by_id("category", category_id)
    if not category:
        raise NotFoundError("Category not found")
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in changes and changes["name"] != category["name"]:
        in_use = count_books_in_category(category["name"])
        if in_use:
            raise InvalidRequestError(f"Cannot rename category. {in_use} books are using this category.")
    if changes:
        try:
            update_document("category", category_id, changes)
        except DuplicateKeyError:
            raise ConflictError(f'Category "{changes["name"]}" already exists')
    return serialize(get_document_by_id("category", category_id))


@router.delete("/{category_id}")
def delete_category(category_id: str):
    category = get_document_by_id("category", category_id)
    if not category:
        raise NotFoundError("Category not found")
    in_use = count_books_in_category(category["name"])
    if in_use:
        raise InvalidRequestError(f"Cannot delete category. {in_use} books are using this category.")
    delete_document("category", category_id)
    logger.info("Deleted category %s", category["name"])
    return {"message": "Category deleted successfully"}
