"""
QueryRunner: declarative queries and aggregations over a book collection.

The runner owns no data and keeps no state between calls besides the
collection handle it was given. Every operation validates its description
against the record schema, issues one blocking request, and returns a fully
materialised result.

Usage:
    from bookstore.queries.runner import open_runner
    from bookstore.queries.predicates import GreaterThan

    with open_runner() as runner:
        recent = runner.find_by_filter({"published_year": GreaterThan(value=2000)})
"""

from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal
from typing import (
    Any,
    Dict,
    Generator,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
)

from bson import ObjectId
from bson.errors import InvalidDocument
from pydantic import BaseModel
from pymongo.collection import Collection
from pymongo.errors import ConnectionFailure, OperationFailure

from bookstore.config import Settings
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
from bookstore.errors import InvalidQuery, StoreUnavailable
from bookstore.infrastructure.db_factory import get_collection, mongo_client
from bookstore.queries.predicates import (
    Equals,
    FieldFilter,
    PREDICATE_TYPES,
    bson_value,
    compile_filter,
    leaves,
)
from bookstore.queries.stages import (
    Average,
    FloorDivide,
    GroupBy,
    LimitStage,
    SortStage,
    Sum,
    compile_pipeline,
)
from bookstore.utils.logging import get_logger

log = get_logger(__name__)

SortSpec = Tuple[str, Direction]


@contextmanager
def _store_errors(operation: str) -> Generator[None, None, None]:
    """Translate driver errors into StoreUnavailable / InvalidQuery."""
    try:
        yield
    except ConnectionFailure as exc:
        log.error("Store unreachable", extra={"operation": operation, "error": str(exc)})
        raise StoreUnavailable(f"{operation}: {exc}") from exc
    except OperationFailure as exc:
        log.error("Store rejected query", extra={"operation": operation, "error": str(exc)})
        raise InvalidQuery(f"{operation}: {exc}") from exc
    except InvalidDocument as exc:
        log.error("Query cannot be encoded", extra={"operation": operation, "error": str(exc)})
        raise InvalidQuery(f"{operation}: {exc}") from exc


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


_VALUE_CHECKS = {
    FieldKind.NUMERIC: _is_number,
    FieldKind.TEXT: lambda value: isinstance(value, str),
    FieldKind.BOOLEAN: lambda value: isinstance(value, bool),
    FieldKind.OTHER: lambda value: isinstance(value, (ObjectId, str, int)) and not isinstance(value, bool),
}


class QueryRunner:
    """
    Execute filter, projection, sort, pagination, write, aggregation and index
    requests against a single collection.

    Parameters
    ----------
    collection : pymongo.collection.Collection
        Handle to the collection; the caller owns its connection.
    schema : type[BaseModel]
        Record schema used to validate field references. Defaults to `Book`.
    """

    def __init__(self, collection: Collection, schema: Type[BaseModel] = Book) -> None:
        self._collection = collection
        self._schema = schema
        self._kinds: Dict[str, FieldKind] = field_kinds(schema)

    @property
    def collection(self) -> Collection:
        return self._collection

    def __repr__(self) -> str:
        return f"<QueryRunner collection='{self._collection.name}' schema={self._schema.__name__}>"

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def _require_field(self, field: Any, context: str) -> FieldKind:
        if not isinstance(field, str) or field not in self._kinds:
            raise InvalidQuery(f"Unknown field {field!r} in {context}")
        return self._kinds[field]

    def _check_value(self, field: str, kind: FieldKind, value: Any, context: str) -> None:
        check = _VALUE_CHECKS.get(kind)
        if check is not None and not check(value):
            raise InvalidQuery(
                f"{context}: value {value!r} does not match {kind.value} field '{field}'"
            )

    def _validate_filter(self, filter: Optional[FieldFilter]) -> None:
        if not filter:
            return
        if not isinstance(filter, Mapping):
            raise InvalidQuery(f"Filter must be a mapping, got {type(filter).__name__}")
        for field, predicate in filter.items():
            kind = self._require_field(field, "filter")
            for leaf in leaves(predicate):
                if isinstance(leaf, Equals):
                    if leaf.value is not None:
                        self._check_value(field, kind, leaf.value, "filter")
                    continue
                if kind is not FieldKind.NUMERIC:
                    raise InvalidQuery(
                        f"Comparison '{leaf.kind}' on non-numeric field '{field}'"
                    )
                if not _is_number(leaf.value):
                    raise InvalidQuery(
                        f"Comparison '{leaf.kind}' on '{field}' needs a number, got {leaf.value!r}"
                    )

    def _validate_sort(self, sort: Optional[SortSpec]) -> Optional[List[Tuple[str, int]]]:
        if sort is None:
            return None
        key, direction = sort
        self._require_field(key, "sort")
        try:
            return [(key, int(Direction(direction)))]
        except ValueError as exc:
            raise InvalidQuery(f"Invalid sort direction {direction!r}") from exc

    def _validate_pipeline(self, stages: Sequence[Any]) -> None:
        available: Dict[str, FieldKind] = dict(self._kinds)
        for index, stage in enumerate(stages):
            where = f"stage {index}"
            if isinstance(stage, GroupBy):
                key_field = stage.key.field
                if key_field not in available:
                    raise InvalidQuery(f"Unknown group key field {key_field!r} in {where}")
                key_kind = available[key_field]
                if isinstance(stage.key, FloorDivide):
                    if key_kind is not FieldKind.NUMERIC:
                        raise InvalidQuery(
                            f"FloorDivide on non-numeric field '{key_field}' in {where}"
                        )
                output: Dict[str, FieldKind] = {stage.key.name: key_kind}
                for name, acc in stage.accumulators.items():
                    if isinstance(acc, (Average, Sum)):
                        if acc.field not in available:
                            raise InvalidQuery(
                                f"Unknown accumulator field {acc.field!r} for '{name}' in {where}"
                            )
                        if available[acc.field] is not FieldKind.NUMERIC:
                            raise InvalidQuery(
                                f"'{acc.kind}' over non-numeric field '{acc.field}' in {where}"
                            )
                    output[name] = FieldKind.NUMERIC
                available = output
            elif isinstance(stage, SortStage):
                if stage.key not in available:
                    raise InvalidQuery(
                        f"Sort key {stage.key!r} is not produced by the preceding stages ({where})"
                    )
            elif not isinstance(stage, LimitStage):
                raise InvalidQuery(
                    f"Stage {index} is {type(stage).__name__}; expected GroupBy, SortStage or LimitStage"
                )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def _find(
        self,
        filter: Optional[FieldFilter],
        operation: str,
        projection: Optional[Dict[str, int]] = None,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        self._validate_filter(filter)
        sort_spec = self._validate_sort(sort)
        query = compile_filter(filter)

        with _store_errors(operation):
            cursor = self._collection.find(query, projection)
            if sort_spec:
                cursor = cursor.sort(sort_spec)
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            results = list(cursor)

        log.info(
            f"[{operation}] {len(results)} record(s)",
            extra={"operation": operation, "filter": query, "rows": len(results)},
        )
        return results

    def find_by_filter(self, filter: Optional[FieldFilter] = None) -> List[Dict[str, Any]]:
        """Return every record matching `filter` (all records when empty)."""
        return self._find(filter, "find")

    def project(
        self,
        filter: Optional[FieldFilter],
        fields: Iterable[str],
        include_id: bool = True,
    ) -> List[Dict[str, Any]]:
        """
        Return matching records reduced to `fields`.

        The identity field is kept unless `include_id` is False.
        """
        wanted: Set[str] = set(fields)
        if not wanted:
            raise InvalidQuery("Projection needs at least one field")
        for field in wanted:
            self._require_field(field, "projection")
        projection = {field: 1 for field in sorted(wanted)}
        if not include_id and "_id" not in wanted:
            projection["_id"] = 0
        return self._find(filter, "project", projection=projection)

    def sort(
        self,
        filter: Optional[FieldFilter],
        key: str,
        direction: Direction = Direction.ASCENDING,
    ) -> List[Dict[str, Any]]:
        """Return matching records ordered by `key`; ties come back in store order."""
        return self._find(filter, "sort", sort=(key, direction))

    def paginate(
        self,
        filter: Optional[FieldFilter],
        page: int,
        page_size: int,
        sort: Optional[SortSpec] = None,
    ) -> List[Dict[str, Any]]:
        """
        Return page `page` (1-based) of at most `page_size` matching records.

        A page past the end of the data is an empty list.
        """
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise InvalidQuery(f"Page number must be an integer >= 1, got {page!r}")
        if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
            raise InvalidQuery(f"Page size must be an integer >= 1, got {page_size!r}")
        return self._find(
            filter,
            "paginate",
            sort=sort,
            skip=(page - 1) * page_size,
            limit=page_size,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def update_one(self, match: FieldFilter, changes: Mapping[str, Any]) -> UpdateOutcome:
        """
        Merge `changes` into the first record matching `match`.

        No match is an ordinary outcome (`matched=False, modified=False`).
        """
        self._validate_filter(match)
        if not changes or not isinstance(changes, Mapping):
            raise InvalidQuery("update_one() expects a non-empty mapping of changes")
        for field, value in changes.items():
            kind = self._require_field(field, "changes")
            if field == "_id":
                raise InvalidQuery("The identity field cannot be changed")
            if isinstance(value, PREDICATE_TYPES):
                raise InvalidQuery(f"Change for '{field}' must be a value, not a predicate")
            self._check_value(field, kind, value, "changes")

        query = compile_filter(match)
        update = {"$set": {field: bson_value(value) for field, value in changes.items()}}
        with _store_errors("update_one"):
            result = self._collection.update_one(query, update)

        outcome = UpdateOutcome(
            matched=bool(result.matched_count),
            modified=bool(result.modified_count),
        )
        log.info(
            f"[update_one] matched={outcome.matched} modified={outcome.modified}",
            extra={"operation": "update_one", "filter": query},
        )
        return outcome

    def delete_one(self, match: FieldFilter) -> DeleteOutcome:
        """Remove at most one record matching `match`."""
        self._validate_filter(match)
        query = compile_filter(match)
        with _store_errors("delete_one"):
            result = self._collection.delete_one(query)

        outcome = DeleteOutcome(deleted_count=int(result.deleted_count or 0))
        log.info(
            f"[delete_one] deleted={outcome.deleted_count}",
            extra={"operation": "delete_one", "filter": query},
        )
        return outcome

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------
    def aggregate(self, stages: Sequence[Any]) -> List[Dict[str, Any]]:
        """
        Run `stages` left to right; an empty pipeline returns every record.
        """
        if isinstance(stages, (str, bytes, Mapping)):
            raise InvalidQuery("aggregate() expects a sequence of stages")
        stages = list(stages)
        self._validate_pipeline(stages)
        pipeline = compile_pipeline(stages)

        with _store_errors("aggregate"):
            results = list(self._collection.aggregate(pipeline))

        log.info(
            f"[aggregate] {len(results)} result(s)",
            extra={"operation": "aggregate", "stages": len(stages), "rows": len(results)},
        )
        return results

    # ------------------------------------------------------------------
    # Indexes & diagnostics
    # ------------------------------------------------------------------
    def _existing_index(self, keys: Sequence[Tuple[str, int]]) -> Optional[str]:
        with _store_errors("index_information"):
            indexes = self._collection.index_information()
        wanted = [(field, int(direction)) for field, direction in keys]
        for name, info in indexes.items():
            # Special index types such as "hashed" carry string directions
            existing = [(field, direction) for field, direction in info.get("key", [])]
            if existing == wanted:
                return name
        return None

    def create_index(self, fields: Sequence[Tuple[str, Any]]) -> IndexHandle:
        """
        Declare a single or compound index, returning the existing handle when an
        index with the same key specification is already present.
        """
        if isinstance(fields, (str, bytes)) or not fields:
            raise InvalidQuery("create_index() expects a non-empty sequence of (field, direction)")
        keys: List[Tuple[str, int]] = []
        for entry in fields:
            try:
                field, direction = entry
                direction = Direction(direction)
            except (TypeError, ValueError) as exc:
                raise InvalidQuery(f"Invalid index key {entry!r}") from exc
            self._require_field(field, "index")
            keys.append((field, int(direction)))
        if len({field for field, _ in keys}) != len(keys):
            raise InvalidQuery(f"Duplicate field in index specification {keys!r}")

        name = self._existing_index(keys)
        if name is not None:
            log.info(f"[create_index] {name} already exists", extra={"index": name})
        else:
            with _store_errors("create_index"):
                name = self._collection.create_index(keys)
            log.info(f"[create_index] created {name}", extra={"index": name})
        return IndexHandle(name=name, keys=tuple(keys))

    def explain_filter(self, filter: Optional[FieldFilter] = None) -> ExecutionPlan:
        """Describe how the store would execute `filter`; reads no records."""
        self._validate_filter(filter)
        query = compile_filter(filter)
        with _store_errors("explain"):
            raw = self._collection.find(query).explain()
        plan = parse_explain(raw)
        log.info(
            f"[explain] stage={plan.winning_stage} index={plan.index_name}",
            extra={"operation": "explain", "filter": query, "uses_index": plan.uses_index},
        )
        return plan


def _walk_plan(plan: Mapping[str, Any]) -> Generator[Mapping[str, Any], None, None]:
    yield plan
    child = plan.get("inputStage")
    if isinstance(child, Mapping):
        yield from _walk_plan(child)
    for child in plan.get("inputStages", []) or []:
        if isinstance(child, Mapping):
            yield from _walk_plan(child)


def parse_explain(raw: Mapping[str, Any]) -> ExecutionPlan:
    """
    Summarise a MongoDB explain document.

    Handles both classic plans and slot-based-engine plans, where the query
    plan is nested under `winningPlan.queryPlan`.
    """
    planner = raw.get("queryPlanner", {}) or {}
    winning = planner.get("winningPlan", {}) or {}
    winning = winning.get("queryPlan", winning)

    index_name: Optional[str] = None
    for node in _walk_plan(winning):
        if node.get("stage") == "IXSCAN" or "indexName" in node:
            index_name = node.get("indexName")
            break

    stats = raw.get("executionStats", {}) or {}
    return ExecutionPlan(
        namespace=planner.get("namespace"),
        winning_stage=winning.get("stage"),
        uses_index=index_name is not None,
        index_name=index_name,
        returned=stats.get("nReturned"),
        keys_examined=stats.get("totalKeysExamined"),
        docs_examined=stats.get("totalDocsExamined"),
        execution_time_ms=stats.get("executionTimeMillis"),
        raw=dict(raw),
    )


@contextmanager
def open_runner(settings: Optional[Settings] = None) -> Generator[QueryRunner, None, None]:
    """
    Open a client session and yield a QueryRunner bound to the configured
    collection. The connection is released when the block exits, however it
    exits.
    """
    with mongo_client(settings) as client:
        yield QueryRunner(get_collection(client, settings))


__all__ = ["QueryRunner", "open_runner", "parse_explain"]
