"""
CLI utility helpers — output formatting and context management.
"""

from __future__ import annotations

import json
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from relset.core.errors import RelsetError
from relset.core.settings import RelsetSettings
from relset.orm.context import ORMContext

console = Console()
err_console = Console(stderr=True)


# ── Context helper ───────────────────────────────────────────────────────


def make_context(database: str | None = None) -> ORMContext:
    """Build an ``ORMContext`` for ``database``, defaulting to ``RELSET_DATABASE_URL``."""
    settings = RelsetSettings()
    if database:
        settings = settings.model_copy(update={"database_url": database})
    try:
        return ORMContext.from_settings(settings)
    except RelsetError as e:
        fail(e)


def fail(error: RelsetError) -> NoReturn:
    """Print a relset error and exit with status 1."""
    err_console.print(f"[bold red]Error[/bold red] ({type(error).__name__}): {error.message}")
    raise typer.Exit(code=1)


# ── Output helpers ───────────────────────────────────────────────────────


def output_rows(rows: list[dict[str, Any]], *, as_json: bool = False, title: str = "") -> None:
    """Render rows as a Rich table or as JSON."""
    if as_json:
        console.print_json(json.dumps(rows, default=str))
        return

    if not rows:
        console.print("[dim]No rows.[/dim]")
        return

    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for column in rows[0]:
        table.add_column(column, overflow="fold")
    for row in rows:
        table.add_row(*("" if value is None else str(value) for value in row.values()))
    console.print(table)
