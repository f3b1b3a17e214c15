"""
Seed script for the bookstore query runner.

Validates a sample catalogue of classic and recent books through the `Book`
model and loads it into the configured collection with `insert_many`.
"""

from __future__ import annotations

import sys
import time
from typing import List, Optional

import typer
from pymongo.collection import Collection

from bookstore.config import get_settings
from bookstore.domain.models import Book
from bookstore.errors import BookstoreError
from bookstore.infrastructure.db_factory import get_collection, mongo_client
from bookstore.utils.logging import configure_logging

app = typer.Typer(help="Load the sample book catalogue into MongoDB.")

_CATALOGUE = [
    ("To Kill a Mockingbird", "Harper Lee", "Fiction", 1960, 12.99, True),
    ("1984", "George Orwell", "Dystopian", 1949, 10.99, True),
    ("The Great Gatsby", "F. Scott Fitzgerald", "Fiction", 1925, 9.99, True),
    ("Brave New World", "Aldous Huxley", "Dystopian", 1932, 11.50, False),
    ("The Hobbit", "J.R.R. Tolkien", "Fantasy", 1937, 14.99, True),
    ("The Catcher in the Rye", "J.D. Salinger", "Fiction", 1951, 8.99, True),
    ("Pride and Prejudice", "Jane Austen", "Romance", 1813, 7.99, True),
    ("The Lord of the Rings", "J.R.R. Tolkien", "Fantasy", 1954, 19.99, True),
    ("Animal Farm", "George Orwell", "Political Satire", 1945, 8.50, False),
    ("The Alchemist", "Paulo Coelho", "Fiction", 1988, 10.99, True),
    ("Moby Dick", "Herman Melville", "Adventure", 1851, 12.50, False),
    ("Wuthering Heights", "Emily Brontë", "Gothic Fiction", 1847, 9.99, True),
    ("The Da Vinci Code", "Dan Brown", "Thriller", 2003, 13.99, True),
    ("The Road", "Cormac McCarthy", "Post-apocalyptic", 2006, 11.99, False),
    ("The Night Circus", "Erin Morgenstern", "Fantasy", 2011, 15.50, True),
    ("The Martian", "Andy Weir", "Science Fiction", 2011, 14.25, True),
    ("The Midnight Library", "Matt Haig", "Fiction", 2020, 16.99, True),
    ("Project Hail Mary", "Andy Weir", "Science Fiction", 2021, 18.99, False),
]


def sample_books() -> List[Book]:
    """The built-in catalogue as validated Book models."""
    return [
        Book(
            title=title,
            author=author,
            genre=genre,
            published_year=year,
            price=price,
            in_stock=in_stock,
        )
        for title, author, genre, year, price, in_stock in _CATALOGUE
    ]


def _seed(collection: Collection, books: List[Book], drop: bool) -> int:
    if drop:
        collection.drop()
    result = collection.insert_many([book.to_document() for book in books])
    return len(result.inserted_ids)


@app.command()
def main(
    drop: bool = typer.Option(
        False,
        "--drop",
        help="Drop the collection before inserting.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Only print the catalogue; do not touch the store.",
    ),
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        "-n",
        min=1,
        help="Insert only the first N books.",
    ),
) -> None:
    """
    Insert the sample catalogue into the configured books collection.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    books = sample_books()[:limit] if limit else sample_books()

    if dry_run:
        for book in books:
            typer.echo(f"{book.published_year}  {book.title} - {book.author} ({book.genre}) ${book.price:.2f}")
        typer.echo(f"{len(books)} book(s); dry run, nothing inserted.")
        return

    start = time.perf_counter()
    try:
        with mongo_client(settings) as client:
            inserted = _seed(get_collection(client, settings), books, drop)
    except BookstoreError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)
    duration = time.perf_counter() - start
    typer.echo(
        f"Inserted {inserted} book(s) into {settings.db_name}.{settings.db_collection} "
        f"in {duration:.2f}s."
    )


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
