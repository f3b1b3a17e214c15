"""
Pytest configuration for the bookstore query runner.

Provides fixtures for:
- Settings overrides for unit and integration tests
- An in-memory collection (mongomock) seeded with the sample catalogue
- A QueryRunner bound to that collection
"""

from __future__ import annotations

import os
from typing import Any, Dict, Generator, List

import mongomock
import pytest

from bookstore.config import Settings, get_settings
from bookstore.queries.runner import QueryRunner
from scripts.seed_books import sample_books


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        _env_file=None,
        mongo_uri=os.getenv("MONGO_URI"),
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "27017")),
        db_name=os.getenv("DB_NAME", "plp_bookstore_test"),
        db_collection="books",
        db_server_selection_timeout_ms=2000,
        db_connect_attempts=1,
        log_level="DEBUG",
    )


@pytest.fixture
def book_documents() -> List[Dict[str, Any]]:
    """Fresh store documents for the sample catalogue (18 books)."""
    return [book.to_document() for book in sample_books()]


@pytest.fixture
def collection(book_documents: List[Dict[str, Any]]) -> Generator[Any, None, None]:
    client = mongomock.MongoClient()
    books = client["plp_bookstore"]["books"]
    books.insert_many(book_documents)
    try:
        yield books
    finally:
        client.close()


@pytest.fixture
def empty_collection() -> Generator[Any, None, None]:
    client = mongomock.MongoClient()
    try:
        yield client["plp_bookstore"]["books"]
    finally:
        client.close()


@pytest.fixture
def runner(collection: Any) -> QueryRunner:
    return QueryRunner(collection)
