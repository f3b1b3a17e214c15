"""
Aggregation pipeline stages.

Stages form a closed set of variants so that malformed shapes are rejected
when a stage is built rather than when the pipeline runs:

    [
        GroupBy(key=FieldRef(field="author"), accumulators={"count": Count()}),
        SortStage(key="count", direction=Direction.DESCENDING),
        LimitStage(n=1),
    ]

Group output records carry the key under its own name (`author` above) instead
of MongoDB's `_id`, so later stages and callers refer to it by that name.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, model_validator

from bookstore.domain.models import Direction
from bookstore.errors import InvalidQuery


class FieldRef(BaseModel):
    """Group on the raw value of a field."""

    kind: Literal["field"] = "field"
    field: str = Field(..., min_length=1)
    alias: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def name(self) -> str:
        return self.alias or self.field

    def expression(self) -> Any:
        return f"${self.field}"


class FloorDivide(BaseModel):
    """Group on floor(field / divisor), e.g. decades with divisor 10."""

    kind: Literal["floor_divide"] = "floor_divide"
    field: str = Field(..., min_length=1)
    divisor: int = Field(..., gt=0)
    alias: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def name(self) -> str:
        return self.alias or f"{self.field}_by_{self.divisor}"

    def expression(self) -> Any:
        return {"$floor": {"$divide": [f"${self.field}", self.divisor]}}


KeyExpression = Annotated[Union[FieldRef, FloorDivide], Field(discriminator="kind")]


class Count(BaseModel):
    kind: Literal["count"] = "count"

    model_config = {"frozen": True}

    def expression(self) -> Any:
        return {"$sum": 1}


class Average(BaseModel):
    kind: Literal["average"] = "average"
    field: str = Field(..., min_length=1)

    model_config = {"frozen": True}

    def expression(self) -> Any:
        return {"$avg": f"${self.field}"}


class Sum(BaseModel):
    kind: Literal["sum"] = "sum"
    field: str = Field(..., min_length=1)

    model_config = {"frozen": True}

    def expression(self) -> Any:
        return {"$sum": f"${self.field}"}


Accumulator = Annotated[Union[Count, Average, Sum], Field(discriminator="kind")]


class GroupBy(BaseModel):
    kind: Literal["group"] = "group"
    key: KeyExpression
    accumulators: Dict[str, Accumulator] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_names(self) -> "GroupBy":
        for name in self.accumulators:
            if not name or name.startswith("$") or "." in name:
                raise ValueError(f"Invalid accumulator name {name!r}")
            if name == self.key.name:
                raise ValueError(f"Accumulator {name!r} collides with the group key name")
        if self.key.name == "_id":
            raise ValueError("Group key cannot be published as '_id'; set an alias")
        return self

    def compile(self) -> List[Dict[str, Any]]:
        group: Dict[str, Any] = {"_id": self.key.expression()}
        group.update({name: acc.expression() for name, acc in self.accumulators.items()})
        project: Dict[str, Any] = {"_id": 0, self.key.name: "$_id"}
        project.update({name: 1 for name in self.accumulators})
        return [{"$group": group}, {"$project": project}]


class SortStage(BaseModel):
    kind: Literal["sort"] = "sort"
    key: str = Field(..., min_length=1)
    direction: Direction = Direction.ASCENDING

    model_config = {"frozen": True}

    def compile(self) -> List[Dict[str, Any]]:
        return [{"$sort": {self.key: int(self.direction)}}]


class LimitStage(BaseModel):
    kind: Literal["limit"] = "limit"
    n: int = Field(..., gt=0)

    model_config = {"frozen": True}

    def compile(self) -> List[Dict[str, Any]]:
        return [{"$limit": self.n}]


Stage = Annotated[Union[GroupBy, SortStage, LimitStage], Field(discriminator="kind")]
STAGE_TYPES = (GroupBy, SortStage, LimitStage)

_pipeline_adapter: TypeAdapter[List[Stage]] = TypeAdapter(List[Stage])


def compile_pipeline(stages: Sequence[Any]) -> List[Dict[str, Any]]:
    """Render stages, left to right, as a MongoDB aggregation pipeline."""
    pipeline: List[Dict[str, Any]] = []
    for index, stage in enumerate(stages):
        if not isinstance(stage, STAGE_TYPES):
            raise InvalidQuery(
                f"Stage {index} is {type(stage).__name__}; expected GroupBy, SortStage or LimitStage"
            )
        pipeline.extend(stage.compile())
    return pipeline


def parse_pipeline(raw: Sequence[Any]) -> List[Union[GroupBy, SortStage, LimitStage]]:
    """
    Build stages from plain dictionaries, e.g. decoded JSON:

        [{"kind": "group", "key": {"kind": "field", "field": "genre"},
          "accumulators": {"avgPrice": {"kind": "average", "field": "price"}}}]
    """
    try:
        return _pipeline_adapter.validate_python(list(raw))
    except (ValidationError, TypeError) as exc:
        raise InvalidQuery(f"Malformed pipeline: {exc}") from exc


__all__ = [
    "Accumulator",
    "Average",
    "Count",
    "FieldRef",
    "FloorDivide",
    "GroupBy",
    "KeyExpression",
    "LimitStage",
    "SortStage",
    "Stage",
    "Sum",
    "compile_pipeline",
    "parse_pipeline",
]
