"""
Domain models for the bookstore query runner.

Defines the book record schema stored in the `books` collection and the
outcome types returned by write, index and explain operations. The schema is
also used by the query runner to validate field references before a request
reaches the store.
"""
from __future__ import annotations

from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any, Dict, Mapping, Optional, Tuple, Type

from pydantic import BaseModel, Field, field_validator


class Direction(IntEnum):
    """Sort/index direction, value-compatible with pymongo.ASCENDING/DESCENDING."""

    ASCENDING = 1
    DESCENDING = -1


class FieldKind(str, Enum):
    NUMERIC = "numeric"
    TEXT = "text"
    BOOLEAN = "boolean"
    OTHER = "other"


class Book(BaseModel):
    """
    Representation of a single document in the `books` collection.
    """

    id: Optional[str] = Field(None, alias="_id", description="Store-assigned identity.")
    title: str = Field(..., description="Book title; used informally as the key.")
    author: str = Field(..., description="Author name.")
    genre: str = Field(..., description="Informal genre label, e.g. 'Fiction'.")
    published_year: int = Field(..., description="Year of first publication.")
    price: float = Field(..., ge=0, description="List price.")
    in_stock: bool = Field(True, description="Whether the book is currently in stock.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "extra": "ignore",
    }

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        # ObjectId and friends are rendered as their string form
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "Book":
        return cls.model_validate(dict(document))

    def to_document(self) -> Dict[str, Any]:
        """Store document without the identity field."""
        return self.model_dump(exclude={"id"})


class UpdateOutcome(BaseModel):
    matched: bool
    modified: bool

    model_config = {"frozen": True}


class DeleteOutcome(BaseModel):
    deleted_count: int = Field(..., ge=0, le=1)

    model_config = {"frozen": True}


class IndexHandle(BaseModel):
    """
    Name and key specification of an index on the collection.

    Handles for the same key specification compare equal, whether the index was
    created by the call or already existed.
    """

    name: str
    keys: Tuple[Tuple[str, Direction], ...]

    model_config = {"frozen": True}


class ExecutionPlan(BaseModel):
    """
    Summary of the store's explain output for a filter.
    """

    namespace: Optional[str] = None
    winning_stage: Optional[str] = None
    uses_index: bool = False
    index_name: Optional[str] = None
    returned: Optional[int] = None
    keys_examined: Optional[int] = None
    docs_examined: Optional[int] = None
    execution_time_ms: Optional[int] = None
    raw: Dict[str, Any] = Field(default_factory=dict, repr=False)

    model_config = {"frozen": True}


def _kind_of(annotation: Any) -> FieldKind:
    # bool is checked first: it is a subclass of int
    if annotation is bool:
        return FieldKind.BOOLEAN
    if annotation in (int, float, Decimal):
        return FieldKind.NUMERIC
    if annotation is str:
        return FieldKind.TEXT
    return FieldKind.OTHER


def field_kinds(schema: Type[BaseModel]) -> Dict[str, FieldKind]:
    """
    Map store field names of a schema model to their kind.

    Aliased fields are keyed by alias (the name used in the store), so `Book.id`
    appears as `_id`.
    """
    kinds: Dict[str, FieldKind] = {}
    for name, info in schema.model_fields.items():
        key = info.alias or name
        kinds[key] = FieldKind.OTHER if key == "_id" else _kind_of(info.annotation)
    kinds.setdefault("_id", FieldKind.OTHER)
    return kinds


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
