"""
Field predicates and filter compilation.

A filter is a mapping from field name to either a bare literal (equality) or
one of the predicate variants below:

    {"genre": "Fiction", "published_year": GreaterThan(value=2000)}

`compile_filter` renders such a mapping as a MongoDB query document and
`parse_filter` accepts the operator shorthand used in the mongo shell
(`{"published_year": {"$gt": 2000}}`).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field

from bookstore.errors import InvalidQuery


class Equals(BaseModel):
    kind: Literal["eq"] = "eq"
    value: Any

    model_config = {"frozen": True}


class GreaterThan(BaseModel):
    kind: Literal["gt"] = "gt"
    value: Any

    model_config = {"frozen": True}


class LessThan(BaseModel):
    kind: Literal["lt"] = "lt"
    value: Any

    model_config = {"frozen": True}


class And(BaseModel):
    """Conjunction of predicates over the same field."""

    kind: Literal["and"] = "and"
    predicates: List["Predicate"] = Field(..., min_length=1)

    model_config = {"frozen": True}


Predicate = Annotated[
    Union[Equals, GreaterThan, LessThan, And],
    Field(discriminator="kind"),
]
And.model_rebuild()

PREDICATE_TYPES = (Equals, GreaterThan, LessThan, And)

FieldFilter = Mapping[str, Any]

_OPERATORS: Dict[str, str] = {"eq": "$eq", "gt": "$gt", "lt": "$lt"}
_SHORTHAND = {"$eq": Equals, "$gt": GreaterThan, "$lt": LessThan}


def as_predicate(value: Any) -> Union[Equals, GreaterThan, LessThan, And]:
    """Wrap a bare literal as `Equals`; predicates pass through unchanged."""
    if isinstance(value, PREDICATE_TYPES):
        return value
    return Equals(value=value)


def leaves(predicate: Any) -> List[Union[Equals, GreaterThan, LessThan]]:
    """Flatten nested `And` predicates into their comparison leaves."""
    predicate = as_predicate(predicate)
    if isinstance(predicate, And):
        flat: List[Union[Equals, GreaterThan, LessThan]] = []
        for child in predicate.predicates:
            flat.extend(leaves(child))
        return flat
    return [predicate]


def bson_value(value: Any) -> Any:
    """Convert Python values the driver cannot encode natively."""
    if isinstance(value, Decimal):
        return float(value)
    return value


def _compile_field(field: str, predicate: Any) -> List[Dict[str, Any]]:
    """Return one or more single-field clauses for a predicate."""
    parts = leaves(predicate)
    if len(parts) == 1 and isinstance(parts[0], Equals):
        value = bson_value(parts[0].value)
        # A bare document would be read as an operator expression
        if isinstance(value, Mapping):
            return [{field: {"$eq": value}}]
        return [{field: value}]

    operators = [_OPERATORS[part.kind] for part in parts]
    if len(set(operators)) == len(operators):
        return [{field: {op: bson_value(part.value) for op, part in zip(operators, parts)}}]
    # Repeated operator on one field cannot share a document
    return [{field: {op: bson_value(part.value)}} for op, part in zip(operators, parts)]


def compile_filter(filter: Optional[FieldFilter]) -> Dict[str, Any]:
    """
    Render a field filter as a MongoDB query document.

    Returns `{}` (match everything) for `None` or an empty mapping.
    """
    if not filter:
        return {}
    if not isinstance(filter, Mapping):
        raise InvalidQuery(f"Filter must be a mapping of field to predicate, got {type(filter).__name__}")

    clauses: List[Dict[str, Any]] = []
    needs_and = False
    for field, predicate in filter.items():
        compiled = _compile_field(field, predicate)
        needs_and = needs_and or len(compiled) > 1
        clauses.extend(compiled)

    if needs_and:
        return {"$and": clauses}
    merged: Dict[str, Any] = {}
    for clause in clauses:
        merged.update(clause)
    return merged


def parse_filter(raw: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Build a field filter from mongo-shell style shorthand.

    Plain values become `Equals`; operator documents using `$eq`, `$gt` and
    `$lt` become the matching predicates (several operators → `And`).
    """
    if not raw:
        return {}
    if not isinstance(raw, Mapping):
        raise InvalidQuery(f"Filter must be a mapping, got {type(raw).__name__}")

    parsed: Dict[str, Any] = {}
    for field, value in raw.items():
        if not isinstance(field, str) or not field or field.startswith("$"):
            raise InvalidQuery(f"Invalid field name in filter: {field!r}")
        if isinstance(value, Mapping) and any(str(key).startswith("$") for key in value):
            predicates = []
            for op, operand in value.items():
                if op not in _SHORTHAND:
                    raise InvalidQuery(f"Unsupported operator {op!r} on field '{field}'")
                predicates.append(_SHORTHAND[op](value=operand))
            parsed[field] = predicates[0] if len(predicates) == 1 else And(predicates=predicates)
        else:
            parsed[field] = Equals(value=value)
    return parsed


__all__ = [
    "And",
    "Equals",
    "FieldFilter",
    "GreaterThan",
    "LessThan",
    "Predicate",
    "as_predicate",
    "bson_value",
    "compile_filter",
    "leaves",
    "parse_filter",
]
