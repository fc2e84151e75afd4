"""
Seed the database with categories, an admin user and a few sample books.

Usage: python -m bookstore.seed
"""

import logging

from bookstore import config, database
from bookstore.schemas import Book, Category, User
from bookstore.security import get_password_hash

logger = logging.getLogger(__name__)

CATEGORIES = [
    ("Fiction", "Novels and short stories"),
    ("Non-Fiction", "Essays, memoirs and reportage"),
    ("Mystery", "Crime and detective fiction"),
    ("Biography", "Lives of notable people"),
    ("History", "Accounts of past events"),
    ("Science", "Popular and academic science"),
    ("Technology", "Computing and engineering"),
    ("Poetry", "Verse and poetic works"),
    ("Punjabi Literature", "Works from the Punjabi literary tradition"),
]

SAMPLE_BOOKS = [
    {
        "title": "The Great Gatsby",
        "authors": ["F. Scott Fitzgerald"],
        "description": "A classic American novel set in the Jazz Age, exploring wealth, love and the American Dream.",
        "categories": ["Fiction"],
        "price": 975,
        "stock": 50,
        "publisher": "Scribner",
        "pages": 180,
    },
    {
        "title": "Pinjar",
        "authors": ["Amrita Pritam"],
        "description": "A heart-wrenching story depicting women's suffering during partition.",
        "categories": ["Punjabi Literature"],
        "price": 450,
        "stock": 25,
        "publisher": "Navyug Publishers",
        "pages": 156,
        "featured": True,
    },
    {
        "title": "Khooni Vaisakhi",
        "authors": ["Nanak Singh"],
        "description": "A painful account of the Jallianwala Bagh massacre.",
        "categories": ["History", "Poetry"],
        "price": 350,
        "stock": 30,
        "publisher": "Lahore Book Shop",
        "pages": 98,
        "bestseller": True,
    },
    {
        "title": "Wings of Fire",
        "authors": ["A.P.J. Abdul Kalam", "Arun Tiwari"],
        "description": "Autobiography of India's former President.",
        "categories": ["Biography"],
        "price": 599,
        "stock": 40,
        "publisher": "Universities Press",
        "pages": 196,
    },
]


def seed():
    database.ensure_indexes()

    if database.collection("category").count_documents({}) == 0:
        for name, description in CATEGORIES:
            database.create_document("category", Category(name=name, description=description))
        logger.info("Seeded %d categories", len(CATEGORIES))

    if database.collection("user").count_documents({"email": config.ADMIN_EMAIL}) == 0:
        database.create_document("user", User(
            name=config.ADMIN_NAME,
            email=config.ADMIN_EMAIL,
            password_hash=get_password_hash(config.ADMIN_PASSWORD),
            role="admin",
        ))
        logger.info("Seeded admin %s", config.ADMIN_EMAIL)

    if database.collection("book").count_documents({}) == 0:
        for data in SAMPLE_BOOKS:
            database.create_document("book", Book(**data))
        logger.info("Seeded %d books", len(SAMPLE_BOOKS))


if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
    seed()
