"""
Query construction and execution.

Re-exports predicate and stage variants together with the QueryRunner so
callers can import from `bookstore.queries` directly.
"""

from bookstore.queries.predicates import (
    And,
    Equals,
    FieldFilter,
    GreaterThan,
    LessThan,
    Predicate,
    compile_filter,
    parse_filter,
)
from bookstore.queries.runner import QueryRunner, open_runner, parse_explain
from bookstore.queries.stages import (
    Average,
    Count,
    FieldRef,
    FloorDivide,
    GroupBy,
    LimitStage,
    SortStage,
    Stage,
    Sum,
    compile_pipeline,
    parse_pipeline,
)

__all__ = [
    # Predicates
    "And",
    "Equals",
    "FieldFilter",
    "GreaterThan",
    "LessThan",
    "Predicate",
    "compile_filter",
    "parse_filter",
    # Stages
    "Average",
    "Count",
    "FieldRef",
    "FloorDivide",
    "GroupBy",
    "LimitStage",
    "SortStage",
    "Stage",
    "Sum",
    "compile_pipeline",
    "parse_pipeline",
    # Runner
    "QueryRunner",
    "open_runner",
    "parse_explain",
]
