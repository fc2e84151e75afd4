import mongomock
import pytest
from fastapi.testclient import TestClient

from bookstore import config, database
from bookstore.main import app
from bookstore.schemas import Book, Category


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def db(monkeypatch):
    mock_db = mongomock.MongoClient()["bookstore_test"]
    monkeypatch.setattr(database, "db", mock_db)
    monkeypatch.setattr(config, "TAX_RATE", 0.18)
    monkeypatch.setattr(config, "SHIPPING_COST", 50.0)
    database.ensure_indexes()
    return mock_db


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_headers(client):
    r = client.post("/auth/login", json={"email": config.ADMIN_EMAIL, "password": config.ADMIN_PASSWORD})
    assert r.status_code == 200
    return auth_headers(r.json()["access_token"])


@pytest.fixture
def register(client):
    def _register(name="Reader", email="reader@example.com", password="secret123"):
        r = client.post("/auth/register", json={"name": name, "email": email, "password": password})
        assert r.status_code == 201, r.json()
        return r.json()
    return _register


@pytest.fixture
def user_headers(register):
    return auth_headers(register()["access_token"])


@pytest.fixture
def make_category(db):
    def _make(name, description=""):
        existing = db["category"].find_one({"name": name})
        if existing:
            return str(existing["_id"])
        return database.create_document("category", Category(name=name, description=description))
    return _make


@pytest.fixture
def make_book(db, make_category):
    def _make(title="Book", price=100.0, stock=5, categories=("Fiction",), **extra):
        for name in categories:
            make_category(name)
        book = Book(
            title=title,
            authors=["Some Author"],
            description=f"About {title}",
            categories=list(categories),
            price=price,
            stock=stock,
            **extra,
        )
        return database.create_document("book", book)
    return _make


@pytest.fixture
def stock_of(db):
    def _stock(book_id):
        return db["book"].find_one({"_id": database.to_object_id(book_id)})["stock"]
    return _stock


@pytest.fixture
def bearer():
    return auth_headers
