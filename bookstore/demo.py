"""
Demonstration driver: replays the bookstore query walkthrough step by step.

Each step is a named callable over a QueryRunner. `run_demo` executes the
selected steps in order, logs their progress, and returns one result dict
per step.

Usage (example from CLI):
    from bookstore.demo import DemoConfig, run_demo
    from bookstore.queries.runner import open_runner

    with open_runner() as runner:
        results = run_demo(runner, DemoConfig(step_names=["fiction_books"]))

With `persist=True` results are saved to `results/`:
- `results/latest.json` (last run)
- `results/run-<timestamp>.json` (timestamped archive)
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel

from bookstore.domain.models import Direction
from bookstore.queries.predicates import GreaterThan
from bookstore.queries.runner import QueryRunner
from bookstore.queries.stages import (
    Average,
    Count,
    FieldRef,
    FloorDivide,
    GroupBy,
    LimitStage,
    SortStage,
)
from bookstore.utils.logging import get_logger

log = get_logger(__name__)

FailurePolicy = Literal["tolerant", "strict"]


@dataclass(frozen=True)
class DemoStep:
    name: str
    description: str
    action: Callable[[QueryRunner], Any]


@dataclass
class DemoConfig:
    step_names: Optional[Iterable[str]] = None
    page: int = 1
    page_size: int = 5
    failure_policy: FailurePolicy = "tolerant"
    persist: bool = False
    results_dir: Path | str = "results"


def demo_steps(page: int = 1, page_size: int = 5) -> List[DemoStep]:
    """The walkthrough, in execution order."""
    return [
        DemoStep(
            "fiction_books",
            "Find all books in the Fiction genre",
            lambda r: r.find_by_filter({"genre": "Fiction"}),
        ),
        DemoStep(
            "published_after_2000",
            "Find books published after 2000",
            lambda r: r.find_by_filter({"published_year": GreaterThan(value=2000)}),
        ),
        DemoStep(
            "books_by_harper_lee",
            "Find books by Harper Lee",
            lambda r: r.find_by_filter({"author": "Harper Lee"}),
        ),
        DemoStep(
            "update_mockingbird_price",
            "Set the price of 'To Kill a Mockingbird' to 15.99",
            lambda r: r.update_one({"title": "To Kill a Mockingbird"}, {"price": 15.99}),
        ),
        DemoStep(
            "delete_animal_farm",
            "Delete 'Animal Farm'",
            lambda r: r.delete_one({"title": "Animal Farm"}),
        ),
        DemoStep(
            "in_stock_after_2010",
            "Find in-stock books published after 2010",
            lambda r: r.find_by_filter(
                {"in_stock": True, "published_year": GreaterThan(value=2010)}
            ),
        ),
        DemoStep(
            "projected_fields",
            "Return only title, author and price",
            lambda r: r.project(None, ["title", "author", "price"], include_id=False),
        ),
        DemoStep(
            "price_ascending",
            "Books sorted by price (ascending)",
            lambda r: r.sort(None, "price", Direction.ASCENDING),
        ),
        DemoStep(
            "price_descending",
            "Books sorted by price (descending)",
            lambda r: r.sort(None, "price", Direction.DESCENDING),
        ),
        DemoStep(
            "page",
            f"Page {page} of books ({page_size} per page)",
            lambda r: r.paginate(None, page, page_size),
        ),
        DemoStep(
            "average_price_by_genre",
            "Average price of books by genre",
            lambda r: r.aggregate(
                [GroupBy(key=FieldRef(field="genre"), accumulators={"avgPrice": Average(field="price")})]
            ),
        ),
        DemoStep(
            "author_with_most_books",
            "Author with the most books",
            lambda r: r.aggregate(
                [
                    GroupBy(key=FieldRef(field="author"), accumulators={"count": Count()}),
                    SortStage(key="count", direction=Direction.DESCENDING),
                    LimitStage(n=1),
                ]
            ),
        ),
        DemoStep(
            "books_by_decade",
            "Books grouped by publication decade",
            lambda r: r.aggregate(
                [
                    GroupBy(
                        key=FloorDivide(field="published_year", divisor=10, alias="decade"),
                        accumulators={"count": Count()},
                    ),
                    SortStage(key="decade", direction=Direction.ASCENDING),
                ]
            ),
        ),
        DemoStep(
            "index_title",
            "Create an index on title",
            lambda r: r.create_index([("title", Direction.ASCENDING)]),
        ),
        DemoStep(
            "index_author_year",
            "Create a compound index on author and published_year",
            lambda r: r.create_index(
                [("author", Direction.ASCENDING), ("published_year", Direction.ASCENDING)]
            ),
        ),
        DemoStep(
            "explain_title",
            "Explain the title lookup for 'To Kill a Mockingbird'",
            lambda r: r.explain_filter({"title": "To Kill a Mockingbird"}),
        ),
    ]


def available_steps() -> List[str]:
    """List step names in execution order."""
    return [step.name for step in demo_steps()]


def _select_steps(config: DemoConfig) -> List[DemoStep]:
    steps = demo_steps(page=config.page, page_size=config.page_size)
    names = list(config.step_names) if config.step_names is not None else ["all"]
    if len(names) == 1 and names[0] == "all":
        return steps
    by_name = {step.name: step for step in steps}
    unknown = [name for name in names if name not in by_name]
    if unknown:
        raise ValueError(f"Unknown step(s) {', '.join(unknown)}. Available: {', '.join(by_name)}")
    return [by_name[name] for name in names]


def to_jsonable(value: Any) -> Any:
    """Render runner results (records, outcome models, ObjectIds) as JSON-safe data."""
    if isinstance(value, BaseModel):
        return to_jsonable(value.model_dump(exclude={"raw"}))
    if isinstance(value, dict):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def _row_count(value: Any) -> int:
    if isinstance(value, list):
        return len(value)
    deleted = getattr(value, "deleted_count", None)
    if deleted is not None:
        return deleted
    modified = getattr(value, "modified", None)
    if modified is not None:
        return int(modified)
    return 0


def _execute_step(
    runner: QueryRunner, step: DemoStep, failure_policy: FailurePolicy
) -> Dict[str, Any]:
    log.info(f"[STEP START] {step.name}", extra={"step": step.name})
    start = time.perf_counter()
    try:
        value = step.action(runner)
    except Exception as exc:  # noqa: BLE001 - tolerant mode records the failure
        duration = time.perf_counter() - start
        log.exception(f"[STEP FAILED] {step.name}", extra={"step": step.name})
        if failure_policy == "strict":
            raise
        return {
            "step": step.name,
            "description": step.description,
            "result": None,
            "rows": 0,
            "duration_seconds": round(duration, 4),
            "error": str(exc),
            "error_type": type(exc).__name__,
        }

    duration = time.perf_counter() - start
    rows = _row_count(value)
    log.info(f"[STEP SUCCESS] {step.name}", extra={"step": step.name, "rows": rows})
    return {
        "step": step.name,
        "description": step.description,
        "result": value,
        "rows": rows,
        "duration_seconds": round(duration, 4),
    }


def _persist_results(payload: dict, results_dir: Path) -> Path:
    results_dir.mkdir(parents=True, exist_ok=True)
    latest_path = results_dir / "latest.json"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    archive_path = results_dir / f"run-{timestamp}.json"

    for path in (latest_path, archive_path):
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True)

    log.info("Results persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})
    return latest_path


def run_demo(runner: QueryRunner, config: Optional[DemoConfig] = None) -> List[Dict[str, Any]]:
    """
    Run the selected demo steps in order against `runner`.

    Parameters
    ----------
    runner : QueryRunner
        Runner bound to an open collection.
    config : DemoConfig | None
        Step selection, pagination arguments, failure policy and persistence.

    Returns
    -------
    List[dict]
        One dict per step with `step`, `description`, `result`, `rows` and
        `duration_seconds`; failed steps (tolerant policy) carry `error`.
    """
    config = config or DemoConfig()
    if config.failure_policy not in ("tolerant", "strict"):
        raise ValueError(f"Unknown failure policy '{config.failure_policy}'")
    steps = _select_steps(config)

    results: List[Dict[str, Any]] = []
    for index, step in enumerate(steps, start=1):
        log.info(f"[{index}/{len(steps)}] {step.description}", extra={"step": step.name})
        results.append(_execute_step(runner, step, config.failure_policy))

    failed = [r["step"] for r in results if "error" in r]
    if config.persist:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "steps": [step.name for step in steps],
            "results": to_jsonable(results),
        }
        _persist_results(payload, Path(config.results_dir))

    log.info(
        f"[DEMO COMPLETE] {len(steps) - len(failed)}/{len(steps)} step(s) succeeded",
        extra={"steps": len(steps), "failed": failed},
    )
    return results


__all__ = [
    "DemoConfig",
    "DemoStep",
    "available_steps",
    "demo_steps",
    "run_demo",
    "to_jsonable",
]
