"""
Domain package for the bookstore query runner.

Exports the record schema and the outcome types returned by the runner.
Keep this package focused on data definitions and validation concerns.
"""

from bookstore.domain.models import (
    Book,
    DeleteOutcome,
    Direction,
    ExecutionPlan,
    FieldKind,
    IndexHandle,
    UpdateOutcome,
    field_kinds,
)

__all__ = [
    "Book",
    "DeleteOutcome",
    "Direction",
    "ExecutionPlan",
    "FieldKind",
    "IndexHandle",
    "UpdateOutcome",
    "field_kinds",
]
