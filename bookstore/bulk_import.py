"""
Bulk import of books and categories

Rows come either from an uploaded CSV file (header row required) or from an
inline JSON list. Rows missing the required fields are skipped silently;
every other row is inserted on its own, and a failure is recorded against
that row without stopping the batch.
"""

import csv
import logging
import math
import os
import shutil
import tempfile
from typing import Any, Callable, Dict, Iterable, Iterator, List

from fastapi import UploadFile
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from bookstore import config
from bookstore.categories import ensure_categories_exist, insert_category
from bookstore.database import create_document
from bookstore.errors import BookstoreError, InvalidRequestError
from bookstore.schemas import Book, Category

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 10
DEFAULT_CATEGORY = "Fiction"

BOOK_TEMPLATE = (
    "title,authors,description,price,stock,categories,publisher,pages,language,format,isbn,isbn13,"
    "edition,published_date,age_group,tags,discount,original_price,availability,featured,bestseller\n"
    "The Great Indian Novel,Shashi Tharoor,A satirical novel about Indian politics and society,899,25,Fiction,"
    "Penguin Books,432,English,Paperback,9780140107586,9780140107586,1st,1989-01-01,Adult (18+),"
    "\"classic,indian-literature\",10,999,In Stock,true,false\n"
    "Wings of Fire,A.P.J. Abdul Kalam,Autobiography of India's former President,599,40,Biography,"
    "Universities Press,196,English,Paperback,9788173711466,9788173711466,1st,1999-01-01,Adult (18+),"
    "\"autobiography,inspiration\",0,599,In Stock,false,true\n"
    "Pinjar,Amrita Pritam,A heart-wrenching partition story,450,25,Punjabi Literature,Navyug Publishers,156,"
    "English,Paperback,,,1st,1950-01-01,Adult (18+),\"partition,punjabi\",0,450,In Stock,true,false\n"
)

CATEGORY_TEMPLATE = (
    "name,description\n"
    "Indian Literature,Books by Indian authors and about Indian culture\n"
    "Mythology,Books about Hindu mythology and ancient stories\n"
)

TEMPLATES = {
    "books": ("books_template.csv", BOOK_TEMPLATE),
    "categories": ("categories_template.csv", CATEGORY_TEMPLATE),
}

TRUTHY = {"true", "1", "yes"}


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _split(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        parts = value
    else:
        parts = _text(value).split(",")
    return [_text(p) for p in parts if _text(p)]


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return _text(value).lower() in TRUTHY


def _number(value: Any, cast):
    try:
        number = cast(_text(value))
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    field = ".".join(str(p) for p in err["loc"])
    return f"{field}: {err['msg']}" if field else err["msg"]


# ------------------------- Row builders -----------------------
def has_book_fields(row: Dict[str, Any]) -> bool:
    return bool(_text(row.get("title")) and row.get("authors") and _text(row.get("description")))


def has_category_fields(row: Dict[str, Any]) -> bool:
    return bool(_text(row.get("name")))


def build_book(row: Dict[str, Any]) -> Book:
    authors = _split(row["authors"])
    if not authors:
        raise ValueError("At least one author is required")

    price = _number(row.get("price"), float)
    if price is None or price < 0:
        raise ValueError("Valid price is required")

    stock = _number(row.get("stock"), int)
    if stock is None or stock < 0:
        raise ValueError("Valid stock quantity is required")

    categories = _split(row.get("categories")) or [DEFAULT_CATEGORY]
    ensure_categories_exist(categories)

    data = {
        "title": _text(row["title"]),
        "authors": authors,
        "description": _text(row["description"]),
        "price": price,
        "stock": stock,
        "categories": categories,
        "currency": config.CURRENCY,
        "availability": _text(row.get("availability")) or "In Stock",
        "format": _text(row.get("format")) or "Paperback",
        "language": _text(row.get("language")) or "English",
    }
    for field in ("publisher", "isbn", "isbn13", "edition", "published_date", "age_group"):
        if _text(row.get(field)):
            data[field] = _text(row[field])
    if _number(row.get("pages"), int) is not None:
        data["pages"] = _number(row["pages"], int)
    if _split(row.get("tags")):
        data["tags"] = _split(row["tags"])
    for field in ("discount", "original_price"):
        if _number(row.get(field), float) is not None:
            data[field] = _number(row[field], float)
    data["featured"] = _flag(row.get("featured"))
    data["bestseller"] = _flag(row.get("bestseller"))

    try:
        return Book(**data)
    except ValidationError as exc:
        raise ValueError(_first_error(exc))


def _insert_book(row: Dict[str, Any]):
    create_document("book", build_book(row))


def _insert_category(row: Dict[str, Any]):
    try:
        category = Category(name=_text(row["name"]), description=_text(row.get("description")))
    except ValidationError as exc:
        raise ValueError(_first_error(exc))
    insert_category(category)


# ------------------------- Import loop ------------------------
def _run_import(rows: Iterable[Dict[str, Any]], gate: Callable, insert: Callable, noun: str) -> Dict[str, Any]:
    imported = 0
    total = 0
    errors: List[str] = []

    for row in rows:
        if not gate(row):
            continue
        total += 1
        try:
            insert(row)
            imported += 1
        except BookstoreError as exc:
            if exc.status_code == 409:
                errors.append(exc.message)
            else:
                errors.append(f"Row {total}: {exc.message}")
        except ValueError as exc:
            errors.append(f"Row {total}: {exc}")
        except PyMongoError:
            logger.exception("Could not save %s row %d", noun, total)
            errors.append(f"Row {total}: could not be saved")

    logger.info("Bulk import of %s: %d of %d rows imported, %d errors", noun, imported, total, len(errors))
    return {
        "imported": imported,
        "total": total,
        "errors": errors[:MAX_REPORTED_ERRORS] if errors else None,
        "message": f"Successfully imported {imported} out of {total} {noun}",
    }


def import_books(rows: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    return _run_import(rows, has_book_fields, _insert_book, "books")


def import_categories(rows: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    return _run_import(rows, has_category_fields, _insert_category, "categories")


IMPORTERS = {
    "books": import_books,
    "categories": import_categories,
}


# ------------------------- Files ------------------------------
def read_csv_rows(path: str) -> Iterator[Dict[str, Any]]:
    with open(path, newline="", encoding="utf-8-sig") as handle:
        for row in csv.DictReader(handle):
            yield row


def save_upload(upload: UploadFile) -> str:
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    with tempfile.NamedTemporaryFile(delete=False, dir=config.UPLOAD_DIR, suffix=".csv") as tmp:
        shutil.copyfileobj(upload.file, tmp)
        return tmp.name


def import_upload(kind: str, upload: UploadFile) -> Dict[str, Any]:
    importer = IMPORTERS.get(kind)
    if importer is None:
        raise InvalidRequestError("Invalid import type")
    path = save_upload(upload)
    try:
        return importer(read_csv_rows(path))
    except (csv.Error, UnicodeDecodeError) as exc:
        logger.error("CSV parsing failed for %s: %s", upload.filename, exc)
        raise InvalidRequestError("CSV parsing failed")
    finally:
        try:
            os.remove(path)
        except OSError:
            logger.exception("File cleanup error for %s", path)


def import_json(kind: str, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    importer = IMPORTERS.get(kind)
    if importer is None:
        raise InvalidRequestError("Invalid import type")
    return importer(rows)


def get_template(kind: str):
    if kind not in TEMPLATES:
        raise InvalidRequestError("Invalid template type")
    return TEMPLATES[kind]
