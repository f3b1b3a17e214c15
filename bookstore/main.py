from __future__ import annotations

import sys
from typing import Any, Dict, List, Optional

import typer

from bookstore.config import get_settings
from bookstore.demo import DemoConfig, available_steps, run_demo
from bookstore.domain.models import Direction
from bookstore.errors import BookstoreError
from bookstore.infrastructure.db_factory import redacted_uri
from bookstore.queries.predicates import And, GreaterThan, LessThan
from bookstore.queries.runner import open_runner
from bookstore.reporter import print_demo_results, print_result
from bookstore.utils.logging import configure_logging, get_logger

app = typer.Typer(help="Bookstore query runner CLI.")
log = get_logger(__name__)


@app.callback()
def _setup() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


def _fail(exc: BookstoreError) -> None:
    log.error("Query failed", extra={"error_type": type(exc).__name__})
    typer.echo(f"Error: {type(exc).__name__}: {exc}", err=True)
    raise typer.Exit(code=1)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"URI={redacted_uri(settings)} | db={settings.db_name} "
        f"collection={settings.db_collection} | "
        f"timeout={settings.db_server_selection_timeout_ms}ms "
        f"attempts={settings.db_connect_attempts}"
    )


@app.command()
def demo(
    step: Optional[List[str]] = typer.Option(
        None,
        "--step",
        "-s",
        help="Step to run (repeatable). Use 'list' to show available steps; default runs all.",
    ),
    page: int = typer.Option(1, "--page", min=1, help="Page number for the pagination step."),
    page_size: Optional[int] = typer.Option(
        None, "--page-size", min=1, help="Page size (default from settings)."
    ),
    strict: bool = typer.Option(False, "--strict", help="Stop at the first failing step."),
    persist: bool = typer.Option(False, "--persist", help="Write results to results/*.json."),
) -> None:
    """
    Run the bookstore walkthrough: CRUD, advanced queries, aggregations, indexes.
    """
    settings = get_settings()
    if step and "list" in step:
        typer.echo("Available steps: " + ", ".join(available_steps()))
        return

    config = DemoConfig(
        step_names=step or None,
        page=page,
        page_size=page_size or settings.demo_page_size,
        failure_policy="strict" if strict else "tolerant",
        persist=persist,
    )
    try:
        with open_runner(settings) as runner:
            results = run_demo(runner, config)
    except BookstoreError as exc:
        _fail(exc)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    print_demo_results(results)


@app.command()
def find(
    genre: Optional[str] = typer.Option(None, "--genre", help="Exact genre."),
    author: Optional[str] = typer.Option(None, "--author", help="Exact author."),
    title: Optional[str] = typer.Option(None, "--title", help="Exact title."),
    after_year: Optional[int] = typer.Option(
        None, "--after-year", help="Published strictly after this year."
    ),
    before_year: Optional[int] = typer.Option(
        None, "--before-year", help="Published strictly before this year."
    ),
    in_stock: Optional[bool] = typer.Option(
        None, "--in-stock/--out-of-stock", help="Filter on stock status."
    ),
    sort_by: Optional[str] = typer.Option(None, "--sort-by", help="Field to sort on."),
    desc: bool = typer.Option(False, "--desc", help="Sort descending."),
    page: Optional[int] = typer.Option(None, "--page", min=1, help="Page number (1-based)."),
    page_size: Optional[int] = typer.Option(None, "--page-size", min=1, help="Page size."),
) -> None:
    """
    Find books matching simple criteria, optionally sorted and paginated.
    """
    settings = get_settings()
    criteria: Dict[str, Any] = {
        key: value
        for key, value in (("genre", genre), ("author", author), ("title", title), ("in_stock", in_stock))
        if value is not None
    }
    years = []
    if after_year is not None:
        years.append(GreaterThan(value=after_year))
    if before_year is not None:
        years.append(LessThan(value=before_year))
    if years:
        criteria["published_year"] = years[0] if len(years) == 1 else And(predicates=years)

    direction = Direction.DESCENDING if desc else Direction.ASCENDING
    sort = (sort_by, direction) if sort_by else None
    try:
        with open_runner(settings) as runner:
            if page is not None or page_size is not None:
                records = runner.paginate(
                    criteria, page or 1, page_size or settings.demo_page_size, sort=sort
                )
            elif sort is not None:
                records = runner.sort(criteria, sort[0], sort[1])
            else:
                records = runner.find_by_filter(criteria)
    except BookstoreError as exc:
        _fail(exc)
    print_result("Books", records)


@app.command()
def explain(
    title: str = typer.Option(..., "--title", "-t", help="Title to look up."),
) -> None:
    """
    Show how the store would execute a title lookup (index vs. collection scan).
    """
    settings = get_settings()
    try:
        with open_runner(settings) as runner:
            plan = runner.explain_filter({"title": title})
    except BookstoreError as exc:
        _fail(exc)
    print_result(f"Explain: title = {title!r}", plan)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
