from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from bookstore.errors import InvalidQuery
from bookstore.queries.predicates import (
    And,
    Equals,
    GreaterThan,
    LessThan,
    compile_filter,
    parse_filter,
)


def test_empty_filter_matches_everything() -> None:
    assert compile_filter(None) == {}
    assert compile_filter({}) == {}


def test_literal_values_compile_to_equality() -> None:
    assert compile_filter({"genre": "Fiction", "in_stock": True}) == {
        "genre": "Fiction",
        "in_stock": True,
    }


def test_explicit_equals_matches_literal_form() -> None:
    assert compile_filter({"author": Equals(value="Harper Lee")}) == {"author": "Harper Lee"}


def test_document_equality_is_not_read_as_operators() -> None:
    query = compile_filter({"_id": Equals(value={"$ne": None})})
    assert query == {"_id": {"$eq": {"$ne": None}}}


def test_comparisons_compile_to_operator_documents() -> None:
    query = compile_filter({"in_stock": True, "published_year": GreaterThan(value=2010)})
    assert query == {"in_stock": True, "published_year": {"$gt": 2010}}


def test_and_merges_distinct_operators_on_one_field() -> None:
    query = compile_filter(
        {"published_year": And(predicates=[GreaterThan(value=1900), LessThan(value=1950)])}
    )
    assert query == {"published_year": {"$gt": 1900, "$lt": 1950}}


def test_and_with_repeated_operator_falls_back_to_top_level_and() -> None:
    query = compile_filter(
        {
            "genre": "Fiction",
            "price": And(predicates=[GreaterThan(value=5), GreaterThan(value=8)]),
        }
    )
    assert query == {
        "$and": [
            {"genre": "Fiction"},
            {"price": {"$gt": 5}},
            {"price": {"$gt": 8}},
        ]
    }


def test_nested_and_is_flattened() -> None:
    inner = And(predicates=[LessThan(value=20)])
    query = compile_filter({"price": And(predicates=[GreaterThan(value=10), inner])})
    assert query == {"price": {"$gt": 10, "$lt": 20}}


def test_decimal_values_are_sent_as_floats() -> None:
    query = compile_filter({"price": GreaterThan(value=Decimal("12.50"))})
    assert query == {"price": {"$gt": 12.5}}
    assert isinstance(query["price"]["$gt"], float)


def test_and_requires_at_least_one_predicate() -> None:
    with pytest.raises(ValidationError):
        And(predicates=[])


def test_compile_filter_rejects_non_mapping() -> None:
    with pytest.raises(InvalidQuery):
        compile_filter([("genre", "Fiction")])  # type: ignore[arg-type]


def test_parse_filter_understands_shell_shorthand() -> None:
    parsed = parse_filter({"genre": "Fiction", "published_year": {"$gt": 2000}})
    assert parsed == {
        "genre": Equals(value="Fiction"),
        "published_year": GreaterThan(value=2000),
    }


def test_parse_filter_combines_multiple_operators() -> None:
    parsed = parse_filter({"published_year": {"$gt": 1900, "$lt": 1950}})
    assert parsed["published_year"] == And(
        predicates=[GreaterThan(value=1900), LessThan(value=1950)]
    )
    assert compile_filter(parsed) == {"published_year": {"$gt": 1900, "$lt": 1950}}


@pytest.mark.parametrize(
    "raw",
    [
        {"price": {"$regex": "9"}},
        {"price": {"$gt": 1, "cheap": True}},
        {"$where": "this.price > 1"},
    ],
)
def test_parse_filter_rejects_unsupported_input(raw: dict) -> None:
    with pytest.raises(InvalidQuery):
        parse_filter(raw)
