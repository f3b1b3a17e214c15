from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel
from rich import box
from rich.console import Console
from rich.table import Table

from bookstore.demo import to_jsonable

# Preferred column order for book records; other fields follow alphabetically.
_BOOK_COLUMNS = ["_id", "title", "author", "genre", "published_year", "price", "in_stock"]


def _columns(records: Sequence[Dict[str, Any]]) -> List[str]:
    seen = {key for record in records for key in record}
    ordered = [column for column in _BOOK_COLUMNS if column in seen]
    ordered.extend(sorted(seen - set(ordered)))
    return ordered


def _cell(value: Any, column: Optional[str] = None) -> str:
    if value is None:
        return "[dim]-[/dim]"
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, float):
        # Group keys from $floor/$divide come back as whole doubles
        if value.is_integer() and column != "price":
            return str(int(value))
        return f"{value:,.2f}"
    return str(value)


def records_table(title: str, records: Sequence[Dict[str, Any]]) -> Table:
    """
    Build a rich table for a list of records; columns are the union of keys.
    """
    table = Table(title=title, box=box.ROUNDED, caption=f"{len(records)} record(s)")
    columns = _columns(records)
    for column in columns:
        justify = "right" if column in ("price", "published_year") else "left"
        style = "cyan" if column == "title" else None
        table.add_column(column, justify=justify, style=style, no_wrap=column == "_id")
    for record in records:
        table.add_row(*[_cell(record.get(column), column) for column in columns])
    return table


def outcome_table(title: str, outcome: BaseModel) -> Table:
    """Two-column key/value table for outcome models (update, delete, index, plan)."""
    table = Table(title=title, box=box.ROUNDED, show_header=False)
    table.add_column("field", style="magenta")
    table.add_column("value", style="green")
    for key, value in to_jsonable(outcome).items():
        table.add_row(key, _cell(value))
    return table


def print_result(title: str, value: Any, console: Optional[Console] = None) -> None:
    console = console or Console()
    if isinstance(value, list):
        if not value:
            console.print(f"[yellow]{title}: no records.[/yellow]")
            return
        console.print(records_table(title, [to_jsonable(record) for record in value]))
    elif isinstance(value, BaseModel):
        console.print(outcome_table(title, value))
    else:
        console.print(f"{title}: {value}")


def print_demo_results(results: List[Dict[str, Any]], console: Optional[Console] = None) -> None:
    """
    Render each demo step's result, then a summary table of all steps.
    """
    console = console or Console()

    if not results:
        console.print("[yellow]No results to display.[/yellow]")
        return

    for res in results:
        if "error" in res:
            console.print(f"[red]{res['description']}: {res['error_type']}: {res['error']}[/red]")
        else:
            print_result(res["description"], res["result"], console)

    summary = Table(title="Bookstore Demo Summary", box=box.ROUNDED)
    summary.add_column("Step", style="cyan", no_wrap=True)
    summary.add_column("Rows", justify="right", style="magenta")
    summary.add_column("Duration (ms)", justify="right", style="green")
    summary.add_column("Status")
    for res in results:
        status = "[red]failed[/red]" if "error" in res else "[green]ok[/green]"
        summary.add_row(
            res["step"],
            f"{res.get('rows', 0):,}",
            f"{res.get('duration_seconds', 0.0) * 1000:.1f}",
            status,
        )
    console.print(summary)


__all__ = ["outcome_table", "print_demo_results", "print_result", "records_table"]
