from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator, List

import pytest
from typer.testing import CliRunner

from bookstore import main
from bookstore.errors import StoreUnavailable
from bookstore.queries.runner import QueryRunner

cli = CliRunner()


@pytest.fixture
def fake_open_runner(monkeypatch, collection) -> List[Any]:
    """Route CLI sessions to the in-memory collection; records each session."""
    sessions: List[Any] = []

    @contextmanager
    def _open(settings: Any = None) -> Generator[QueryRunner, None, None]:
        sessions.append(settings)
        yield QueryRunner(collection)

    monkeypatch.setattr(main, "open_runner", _open)
    return sessions


@pytest.fixture(autouse=True)
def _wide_terminal(monkeypatch) -> None:
    monkeypatch.setenv("COLUMNS", "200")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")


def test_info_shows_database_and_collection(monkeypatch) -> None:
    monkeypatch.setenv("DB_NAME", "shop")
    monkeypatch.setenv("DB_USER", "reader")
    monkeypatch.setenv("DB_PASSWORD", "secret")
    result = cli.invoke(main.app, ["info"])
    assert result.exit_code == 0
    assert "db=shop" in result.output
    assert "collection=books" in result.output
    assert "secret" not in result.output


def test_demo_list_steps() -> None:
    result = cli.invoke(main.app, ["demo", "--step", "list"])
    assert result.exit_code == 0
    assert "fiction_books" in result.output
    assert "explain_title" in result.output


def test_demo_runs_selected_step(fake_open_runner) -> None:
    result = cli.invoke(main.app, ["demo", "-s", "fiction_books"])
    assert result.exit_code == 0, result.output
    assert "Bookstore Demo Summary" in result.output
    assert "5 record(s)" in result.output
    assert len(fake_open_runner) == 1


def test_find_by_title(fake_open_runner) -> None:
    result = cli.invoke(main.app, ["find", "--title", "The Hobbit"])
    assert result.exit_code == 0, result.output
    assert "1 record(s)" in result.output
    assert "Tolkien" in result.output


def test_find_year_range_paginated(fake_open_runner) -> None:
    result = cli.invoke(
        main.app,
        ["find", "--after-year", "1900", "--before-year", "1950", "--sort-by", "title", "--page-size", "2"],
    )
    assert result.exit_code == 0, result.output
    assert "2 record(s)" in result.output


def test_find_without_matches(fake_open_runner) -> None:
    result = cli.invoke(main.app, ["find", "--genre", "Cookbook"])
    assert result.exit_code == 0
    assert "no records" in result.output


def test_store_unavailable_exits_with_error(monkeypatch) -> None:
    @contextmanager
    def _unreachable(settings: Any = None) -> Generator[QueryRunner, None, None]:
        raise StoreUnavailable("Cannot reach MongoDB: connection refused")
        yield  # pragma: no cover

    monkeypatch.setattr(main, "open_runner", _unreachable)
    result = cli.invoke(main.app, ["explain", "--title", "1984"])
    assert result.exit_code == 1
    assert "StoreUnavailable" in result.output
