"""Rendering of command results: JSON with ``--json``, Rich tables otherwise."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, TypeAlias

from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cpb_ai.cli._context import CliContext

Columns: TypeAlias = "Sequence[tuple[str, str]]"


def print_result(
    ctx: CliContext,
    data: Any,
    *,
    columns: Columns | None = None,
    title: str = "",
) -> None:
    """Print *data* for the current output mode.

    Lists of dicts become one row per item, using *columns* as
    ``(header, key)`` pairs or the first item's keys.  A dict becomes a
    two-column key/value table.  Anything else is printed as-is.
    """
    if ctx.json_mode:
        ctx.console.print_json(json.dumps(data, default=str, ensure_ascii=False))
        return

    if isinstance(data, dict):
        ctx.console.print(_key_value_table(data, title))
    elif isinstance(data, list) and not data:
        ctx.err_console.print("[dim]Nothing recorded yet.[/dim]")
    elif isinstance(data, list) and isinstance(data[0], dict):
        ctx.console.print(_row_table(data, columns or [(k, k) for k in data[0]], title))
    else:
        ctx.console.print(data)


def print_success(ctx: CliContext, message: str) -> None:
    ctx.err_console.print(f"[green]{message}[/green]")


def print_warning(ctx: CliContext, message: str) -> None:
    ctx.err_console.print(Panel(message, title="Warning", border_style="yellow"))


def _cell(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, float):
        return f"{value:.4f}"
    return str(value)


def _row_table(rows: list[dict[str, Any]], columns: Columns, title: str) -> Table:
    table = Table(title=title or None)
    for header, _key in columns:
        table.add_column(header)
    for row in rows:
        table.add_row(*(_cell(row.get(key)) for _header, key in columns))
    return table


def _key_value_table(data: dict[str, Any], title: str) -> Table:
    table = Table(title=title or None, show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for key, value in data.items():
        table.add_row(str(key), _cell(value))
    return table
