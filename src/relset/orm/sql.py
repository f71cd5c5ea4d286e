"""SQL fragment helpers for generated ORM queries.

Everything here is pure string/parameter manipulation.  Values are never
inlined into SQL; every builder returns ``(sql, params)`` using the
dialect's placeholders.

Condition keys follow the column-plus-operator convention::

    {"status=": "live"}            status = ?
    {"status!": "draft"}           (status <> ? OR status IS NULL)
    {"title~": "orm"}              title LIKE ?            ('%orm%')
    {"id=": [1, 2, 3]}             id IN (?, ?, ?)
    {"id!": [1, 2]}                id NOT IN (?, ?)
    {"title|body~": "orm"}         (title LIKE ? OR body LIKE ?)
    {"rating>=": 4}                rating >= ?
    {"deleted_at=": None}          deleted_at IS NULL

A key without an operator means ``=``.  Bare column names are qualified
with the collection's table; ``users.name`` refers to a related table and
makes :func:`from_clause` add the join.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from relset.core.dialect import Dialect
from relset.core.errors import ProgrammerError

if TYPE_CHECKING:
    from relset.orm.schema import SchemaRegistry

CLAUSES = ("SELECT", "FROM", "WHERE", "GROUP BY", "HAVING", "ORDER BY", "LIMIT")

_QUOTED = re.compile(r"'(?:''|\\'|\\[^']|[^'\\])*'")
_CLAUSE_KEYWORD = re.compile(r"\b(SELECT|FROM|WHERE|GROUP\s+BY|HAVING|ORDER\s+BY|LIMIT)\b", re.IGNORECASE)
_PLACEHOLDER = re.compile(r"\?|%s|:\d+")
_IDENTIFIER = re.compile(r"^\w+$")
_QUALIFIED = re.compile(r"^(\w+)\.(\w+)$")
_TABLE_REFERENCE = re.compile(r"\b(\w+)\.\w+\b")
_OPERATORS = ("<=", ">=", "=", "!", "~", "<", ">")
_TEXT_TYPES = ("char", "text", "clob", "string")


def _segments(sql: str) -> list[tuple[bool, str]]:
    """Split SQL into ``(is_quoted, text)`` segments."""
    segments = []
    position = 0
    for match in _QUOTED.finditer(sql):
        if match.start() > position:
            segments.append((False, sql[position : match.start()]))
        segments.append((True, match.group(0)))
        position = match.end()
    if position < len(sql):
        segments.append((False, sql[position:]))
    return segments


def parse_select(sql: str) -> dict[str, str]:
    """
    Split a SELECT statement into its top-level clauses.

    Keywords inside quoted strings or parentheses (subqueries) are ignored.
    Missing clauses map to ``""``.

    Example:
        >>> parse_select("SELECT * FROM posts WHERE id > 3 ORDER BY title")["WHERE"]
        'id > 3'
    """
    found = {clause: "" for clause in CLAUSES}
    current: str | None = None
    buffer: list[str] = []
    depth = 0

    def flush() -> None:
        if current is not None:
            found[current] = (found[current] + "".join(buffer)).strip()
        buffer.clear()

    for quoted, text in _segments(sql):
        if quoted:
            buffer.append(text)
            continue
        position = 0
        for match in _CLAUSE_KEYWORD.finditer(text):
            before = text[position : match.start()]
            depth += before.count("(") - before.count(")")
            buffer.append(before)
            position = match.end()
            if depth == 0:
                flush()
                current = re.sub(r"\s+", " ", match.group(1).upper())
            else:
                buffer.append(match.group(0))
        rest = text[position:]
        depth += rest.count("(") - rest.count(")")
        buffer.append(rest)
    flush()
    return found


def count_placeholders(fragment: str) -> int:
    """Number of bind placeholders outside quoted strings."""
    return sum(len(_PLACEHOLDER.findall(text)) for quoted, text in _segments(fragment) if not quoted)


def split_params(sql: str, params: Sequence[Any]) -> dict[str, tuple[Any, ...]]:
    """Assign each positional parameter of ``sql`` to the clause it appears in."""
    clauses = parse_select(sql)
    split: dict[str, tuple[Any, ...]] = {}
    position = 0
    for clause in CLAUSES:
        count = count_placeholders(clauses[clause])
        split[clause] = tuple(params[position : position + count])
        position += count
    return split


def qualify(table: str, column: str) -> str:
    """``title`` → ``posts.title``; qualified names and expressions are unchanged."""
    return f"{table}.{column}" if _IDENTIFIER.match(column) else column


def _parse_condition_key(key: str) -> tuple[list[str], str]:
    for operator in _OPERATORS:
        if key.endswith(operator):
            return key[: -len(operator)].split("|"), operator
    return key.split("|"), "="


def where_clause(
    table: str,
    conditions: Mapping[str, Any],
    dialect: Dialect,
    start: int = 0,
) -> tuple[str, list[Any]]:
    """Build a WHERE clause body (without the keyword) from ``conditions``."""
    parts: list[str] = []
    params: list[Any] = []

    def bind(value: Any) -> str:
        params.append(value)
        return dialect.placeholder(start + len(params) - 1)

    for key, value in conditions.items():
        columns, operator = _parse_condition_key(key)
        columns = [qualify(table, column) for column in columns]
        values = list(value) if isinstance(value, (list, tuple, set, frozenset)) else [value]
        if not values:
            values = [None]

        if len(columns) > 1:
            if operator != "~":
                raise ProgrammerError(f"Invalid matching type, {operator}, specified for multiple columns")
            groups = []
            for item in values:
                groups.append("(" + " OR ".join(f"{column} LIKE {bind(f'%{item}%')}" for column in columns) + ")")
            parts.append("(" + " AND ".join(groups) + ")")
            continue

        column = columns[0]
        if len(values) > 1:
            if operator == "=":
                parts.append(f"{column} IN ({', '.join(bind(item) for item in values)})")
            elif operator == "!":
                parts.append(f"{column} NOT IN ({', '.join(bind(item) for item in values)})")
            elif operator == "~":
                parts.append("(" + " OR ".join(f"{column} LIKE {bind(f'%{item}%')}" for item in values) + ")")
            else:
                raise ProgrammerError(f"Invalid matching type, {operator}, specified for a list of values")
            continue

        item = values[0]
        if operator == "=":
            parts.append(f"{column} IS NULL" if item is None else f"{column} = {bind(item)}")
        elif operator == "!":
            if item is None:
                parts.append(f"{column} IS NOT NULL")
            else:
                parts.append(f"({column} <> {bind(item)} OR {column} IS NULL)")
        elif operator == "~":
            parts.append(f"{column} LIKE {bind(f'%{item}%')}")
        else:
            if item is None:
                raise ProgrammerError(f"The comparison {operator} can not be used with a NULL value")
            parts.append(f"{column} {operator} {bind(item)}")

    return " AND ".join(parts), params


def order_by_clause(
    table: str,
    order_bys: Mapping[str, str],
    schema: SchemaRegistry | None = None,
    dialect: Dialect | None = None,
) -> str:
    """
    Build an ORDER BY clause body from ``{column_or_expression: direction}``.

    Text columns are compared case-insensitively when a schema and dialect
    are given.
    """
    parts = []
    for column, direction in order_bys.items():
        direction = str(direction).upper()
        if direction not in ("ASC", "DESC"):
            raise ProgrammerError(f"Invalid direction, {direction}, specified. Must be one of: asc, desc")

        column = qualify(table, column)
        match = _QUALIFIED.match(column)
        if match and schema is not None and dialect is not None:
            column_type = schema.get_instance().get_column_type(match.group(1), match.group(2)) or ""
            if any(text_type in column_type.lower() for text_type in _TEXT_TYPES):
                column = dialect.case_insensitive(column)
        parts.append(f"{column} {direction}")
    return ", ".join(parts)


def primary_key_condition(
    table: str,
    columns: Sequence[str],
    keys: Sequence[Any],
    dialect: Dialect,
    start: int = 0,
) -> tuple[str, list[Any]]:
    """
    Match any of ``keys``.

    A single-column key gives ``table.col IN (...)``; a composite key gives
    one parenthesized AND-group per key joined with OR.  Composite keys may
    be tuples in column order or mappings keyed by column.
    """
    if not keys:
        return "1 = 0", []

    params: list[Any] = []

    def bind(value: Any) -> str:
        params.append(value)
        return dialect.placeholder(start + len(params) - 1)

    if len(columns) == 1:
        column = f"{table}.{columns[0]}"
        values = [key[columns[0]] if isinstance(key, Mapping) else key for key in keys]
        return f"{column} IN ({', '.join(bind(value) for value in values)})", params

    groups = []
    for key in keys:
        values = [key[column] for column in columns] if isinstance(key, Mapping) else list(key)
        if len(values) != len(columns):
            raise ProgrammerError(
                f"The primary key {key!r} does not match the primary key columns of {table}: {', '.join(columns)}"
            )
        groups.append("(" + " AND ".join(f"{table}.{c} = {bind(v)}" for c, v in zip(columns, values)) + ")")
    return "(" + " OR ".join(groups) + ")", params


def referenced_tables(table: str, *fragments: str) -> list[str]:
    """Tables other than ``table`` referenced as ``other.column`` outside quoted strings."""
    found: list[str] = []
    for fragment in fragments:
        for quoted, text in _segments(fragment):
            if quoted:
                continue
            for match in _TABLE_REFERENCE.finditer(text):
                name = match.group(1)
                if name != table and name not in found:
                    found.append(name)
    return found


def from_clause(table: str, schema: SchemaRegistry, *fragments: str) -> tuple[str, bool]:
    """
    FROM clause for ``table`` joining every related table the fragments use.

    Returns the clause and whether a to-many join was added (rows of
    ``table`` may then repeat).
    """
    clause = table
    to_many = False
    for related_table in sorted(referenced_tables(table, *fragments)):
        rel = schema.get_route(table, related_table)
        if rel.join_table is not None:
            clause += (
                f" LEFT JOIN {rel.join_table} ON {table}.{rel.column} = {rel.join_table}.{rel.join_column}"
                f" LEFT JOIN {rel.related_table} ON {rel.join_table}.{rel.join_related_column}"
                f" = {rel.related_table}.{rel.related_column}"
            )
        else:
            clause += (
                f" LEFT JOIN {rel.related_table} ON {table}.{rel.column} = {rel.related_table}.{rel.related_column}"
            )
        to_many = to_many or rel.kind.is_to_many
    return clause, to_many


def condense_primary_keys(rows: Sequence[Mapping[str, Any]]) -> list[Any]:
    """Single-column key rows become scalars; wider rows become tuples."""
    if not rows:
        return []
    if len(rows[0]) == 1:
        return [next(iter(row.values())) for row in rows]
    return [tuple(row.values()) for row in rows]


__all__ = [
    "CLAUSES",
    "parse_select",
    "count_placeholders",
    "split_params",
    "qualify",
    "where_clause",
    "order_by_clause",
    "primary_key_condition",
    "referenced_tables",
    "from_clause",
    "condense_primary_keys",
]
