"""
Bookstore - a reusable query runner for a MongoDB collection of book records.

This package factors the usual bookstore walkthrough (CRUD, filtered queries,
projection, sorting, pagination, aggregation pipelines, index creation and
explain) into reusable pieces:

- Typed filter predicates and aggregation stages
- A QueryRunner that validates descriptions and executes them
- Scoped connection handling with retrying health checks
- A demonstration driver and Typer CLI

Store failures surface as `StoreUnavailable`; malformed descriptions as
`InvalidQuery`. Everything else (no matches, page past the end, existing
index) is an ordinary result.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from bookstore.config import Settings, get_settings
from bookstore.domain.models import (
    Book,
    DeleteOutcome,
    Direction,
    ExecutionPlan,
    IndexHandle,
    UpdateOutcome,
)
from bookstore.errors import BookstoreError, InvalidQuery, StoreUnavailable
from bookstore.queries import (
    And,
    Average,
    Count,
    Equals,
    FieldRef,
    FloorDivide,
    GreaterThan,
    GroupBy,
    LessThan,
    LimitStage,
    QueryRunner,
    SortStage,
    Sum,
    open_runner,
)
from bookstore.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "Book",
    "DeleteOutcome",
    "Direction",
    "ExecutionPlan",
    "IndexHandle",
    "UpdateOutcome",
    # Errors
    "BookstoreError",
    "InvalidQuery",
    "StoreUnavailable",
    # Queries
    "And",
    "Average",
    "Count",
    "Equals",
    "FieldRef",
    "FloorDivide",
    "GreaterThan",
    "GroupBy",
    "LessThan",
    "LimitStage",
    "QueryRunner",
    "SortStage",
    "Sum",
    "open_runner",
    # Logging
    "configure_logging",
    "get_logger",
]
