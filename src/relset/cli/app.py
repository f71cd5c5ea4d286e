"""
Root Typer application for the relset CLI.

Commands:
    relset routes TABLE [RELATED_TABLE]   relationship descriptors and route names
    relset query SQL                      run a statement and print the rows
"""

from __future__ import annotations

import typer
from typer import Typer

from relset.cli.utils import console, fail, make_context, output_rows
from relset.core.errors import RelsetError
from relset.core.logging import configure_logging

app = Typer(
    name="relset",
    help="relset — relationship-aware record collections over SQL databases.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from relset import __version__

        typer.echo(f"relset {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level for relset's own logging."),
) -> None:
    """relset CLI — inspect relationship routes and run queries."""
    configure_logging(level=log_level.upper())


# ── Commands ─────────────────────────────────────────────────────────────


@app.command()
def routes(
    table: str = typer.Argument(..., help="Table whose relationships are listed"),
    related_table: str | None = typer.Argument(None, help="Only list relationships to this table"),
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """List the relationships of TABLE and their route names."""
    ctx = make_context(database)
    try:
        relationships = ctx.schema.get_relationships(table)
    except RelsetError as e:
        fail(e)
    finally:
        ctx.database.close()

    rows = [
        rel.to_dict()
        for descriptors in relationships.values()
        for rel in descriptors
        if related_table is None or rel.related_table == related_table
    ]
    output_rows(rows, as_json=json_out, title=f"Relationships of {table}")


@app.command()
def query(
    sql: str = typer.Argument(..., help="SQL statement to execute"),
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL"),
    limit: int | None = typer.Option(None, "--limit", help="Maximum rows to return"),
    offset: int | None = typer.Option(None, "--offset", help="Rows to skip (with --limit)"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Execute SQL, translating --limit/--offset for the database's dialect."""
    ctx = make_context(database)
    try:
        cursor = ctx.database.translated_query(sql, limit=limit, offset=offset)
        rows = cursor.fetch_all_rows()
        ctx.database.commit()
    except RelsetError as e:
        fail(e)
    finally:
        ctx.database.close()

    if not rows and cursor.affected_rows:
        console.print(f"[green]{cursor.affected_rows} row(s) affected[/green]")
        return
    output_rows(rows, as_json=json_out)


__all__ = ["app"]
