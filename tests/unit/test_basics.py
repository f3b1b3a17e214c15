import pytest
from bson import ObjectId
from pydantic import ValidationError

from bookstore import config
from bookstore.domain.models import Book, FieldKind, field_kinds
from scripts import seed_books

CATALOGUE_SIZE = 18


def test_get_settings_defaults(monkeypatch):
    for name in ("MONGO_URI", "DB_HOST", "DB_PORT", "DB_NAME", "DB_COLLECTION", "DEMO_PAGE_SIZE"):
        monkeypatch.delenv(name, raising=False)
    settings = config.Settings(_env_file=None)
    assert settings.mongo_uri is None
    assert settings.db_host == "localhost"
    assert settings.db_port == 27017
    assert settings.db_name == "plp_bookstore"
    assert settings.db_collection == "books"
    assert settings.demo_page_size == 5
    assert settings.db_connect_attempts >= 1


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("DB_NAME", "shop")
    monkeypatch.setenv("DB_CONNECT_ATTEMPTS", "5")
    settings = config.get_settings()
    assert settings.db_name == "shop"
    assert settings.db_connect_attempts == 5
    assert config.get_settings() is settings


def test_book_from_document_stringifies_object_id():
    oid = ObjectId()
    book = Book.from_document(
        {
            "_id": oid,
            "title": "1984",
            "author": "George Orwell",
            "genre": "Dystopian",
            "published_year": 1949,
            "price": 10.99,
            "in_stock": True,
            "pages": 328,
        }
    )
    assert book.id == str(oid)
    assert book.to_document() == {
        "title": "1984",
        "author": "George Orwell",
        "genre": "Dystopian",
        "published_year": 1949,
        "price": 10.99,
        "in_stock": True,
    }


def test_book_rejects_negative_price():
    with pytest.raises(ValidationError):
        Book(title="X", author="Y", genre="Z", published_year=2000, price=-1)


def test_field_kinds_for_book():
    kinds = field_kinds(Book)
    assert kinds == {
        "_id": FieldKind.OTHER,
        "title": FieldKind.TEXT,
        "author": FieldKind.TEXT,
        "genre": FieldKind.TEXT,
        "published_year": FieldKind.NUMERIC,
        "price": FieldKind.NUMERIC,
        "in_stock": FieldKind.BOOLEAN,
    }


def test_sample_catalogue_is_valid():
    books = seed_books.sample_books()
    assert len(books) == CATALOGUE_SIZE
    assert len({book.title for book in books}) == CATALOGUE_SIZE
    titles = {book.title for book in books}
    assert {"To Kill a Mockingbird", "Animal Farm"} <= titles


def test_seed_inserts_catalogue(empty_collection):
    empty_collection.insert_one({"title": "stale"})
    inserted = seed_books._seed(empty_collection, seed_books.sample_books(), drop=True)
    assert inserted == CATALOGUE_SIZE
    assert empty_collection.count_documents({}) == CATALOGUE_SIZE
