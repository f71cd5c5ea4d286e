"""SQL dialect abstraction for backend-agnostic query building.

Provides a ``Dialect`` protocol and concrete implementations for every
supported database backend.  The ORM layer uses ``Dialect`` methods to
generate the few SQL fragments that differ between engines (parameter
placeholders, limit/offset, case-insensitive ordering) without referencing
any specific database driver.

Manifesto:
    Relationship queries are generated, not hand-written, so every fragment
    that varies by engine must come from one place.

    - **One interface:** Dialect protocol for all SQL generation
    - **Zero coupling:** ORM code never imports database drivers
    - **Emulation is explicit:** engines without ``LIMIT ... OFFSET`` get a
      ``ROW_NUMBER()`` wrapper whose bookkeeping column is a known constant

Architecture::

    ┌──────────┐ ┌──────────────┐ ┌────────┐ ┌────────┐ ┌──────────┐
    │ SQLite   │ │ PostgreSQL   │ │  DB2   │ │ MySQL  │ │  Oracle  │
    │ ?, ?, ?  │ │ %s, %s, %s   │ │ ?, ?, ?│ │ %s,%s  │ │ :1, :2   │
    │ LIMIT    │ │ LIMIT        │ │ROW_NUM │ │ LIMIT  │ │ ROWNUM   │
    └──────────┘ └──────────────┘ └────────┘ └────────┘ └──────────┘

Examples:
    >>> from relset.core.dialect import get_dialect
    >>> d = get_dialect("sqlite")
    >>> d.placeholders(3)
    '?, ?, ?'
    >>> d.limit_offset("SELECT * FROM posts", 10, 20)
    'SELECT * FROM posts LIMIT 10 OFFSET 20'

Tags:
    dialect, sql, abstraction, portability, database, relset
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

# Column added by emulated offset/limit translation.  ResultCursor strips it
# from every row of a translated query.
LIMIT_OFFSET_ROW_NUM = "relset_limit_offset_row_num"


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every method returns a **SQL fragment** (string) that is valid for the
    target database.
    """

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    @property
    def native_limit_offset(self) -> bool:
        """Whether the engine understands ``LIMIT n OFFSET m`` natively."""
        ...

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index).

        ``index`` is ignored by dialects that use anonymous placeholders
        (SQLite ``?``, MySQL ``%s``) but required by numbered styles
        (Oracle ``:1``).
        """
        ...

    def placeholders(self, count: int, start: int = 0) -> str:
        """Comma-separated placeholder list beginning at ``start``."""
        ...

    def limit_offset(self, sql: str, limit: int | None, offset: int | None = None) -> str:
        """Return ``sql`` restricted to ``limit`` rows after skipping ``offset``."""
        ...

    def case_insensitive(self, expression: str) -> str:
        """Wrap an expression so that comparisons and ordering ignore case."""
        ...

    def table_exists_query(self) -> str:
        """SQL query that returns a row when the table named by the single
        placeholder exists."""
        ...


def _native_limit_offset(sql: str, limit: int | None, offset: int | None) -> str:
    if limit is None:
        return sql
    sql = f"{sql} LIMIT {int(limit)}"
    if offset:
        sql += f" OFFSET {int(offset)}"
    return sql


# =========================================================================
# Concrete Dialect Implementations
# =========================================================================


class SQLiteDialect:
    """SQLite dialect — ``?`` placeholders, native ``LIMIT``."""

    @property
    def name(self) -> str:
        return "sqlite"

    @property
    def native_limit_offset(self) -> bool:
        return True

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int, start: int = 0) -> str:  # noqa: ARG002
        return ", ".join("?" for _ in range(count))

    def limit_offset(self, sql: str, limit: int | None, offset: int | None = None) -> str:
        return _native_limit_offset(sql, limit, offset)

    def case_insensitive(self, expression: str) -> str:
        return f"LOWER({expression})"

    def table_exists_query(self) -> str:
        return "SELECT name FROM sqlite_master WHERE type='table' AND name = ?"


class PostgreSQLDialect:
    """PostgreSQL dialect — ``%s`` placeholders (psycopg2), native ``LIMIT``."""

    @property
    def name(self) -> str:
        return "postgresql"

    @property
    def native_limit_offset(self) -> bool:
        return True

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def placeholders(self, count: int, start: int = 0) -> str:  # noqa: ARG002
        return ", ".join("%s" for _ in range(count))

    def limit_offset(self, sql: str, limit: int | None, offset: int | None = None) -> str:
        return _native_limit_offset(sql, limit, offset)

    def case_insensitive(self, expression: str) -> str:
        return f"LOWER({expression})"

    def table_exists_query(self) -> str:
        return (
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_name = %s"
        )


class MySQLDialect:
    """MySQL dialect — ``%s`` placeholders, native ``LIMIT``.

    Compatible with ``mysql.connector`` and ``PyMySQL`` (both use
    ``%s`` format paramstyle).
    """

    @property
    def name(self) -> str:
        return "mysql"

    @property
    def native_limit_offset(self) -> bool:
        return True

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def placeholders(self, count: int, start: int = 0) -> str:  # noqa: ARG002
        return ", ".join("%s" for _ in range(count))

    def limit_offset(self, sql: str, limit: int | None, offset: int | None = None) -> str:
        return _native_limit_offset(sql, limit, offset)

    def case_insensitive(self, expression: str) -> str:
        # Default MySQL collations already compare case-insensitively
        return expression

    def table_exists_query(self) -> str:
        return (
            "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = %s"
        )


class DB2Dialect:
    """IBM DB2 dialect — ``?`` placeholders, emulated offset.

    Offset/limit is emulated with ``ROW_NUMBER() OVER ()`` so the query
    works on every DB2 release the ``ibm_db_dbi`` driver supports.
    """

    @property
    def name(self) -> str:
        return "db2"

    @property
    def native_limit_offset(self) -> bool:
        return False

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int, start: int = 0) -> str:  # noqa: ARG002
        return ", ".join("?" for _ in range(count))

    def limit_offset(self, sql: str, limit: int | None, offset: int | None = None) -> str:
        if limit is None:
            return sql
        first = int(offset or 0)
        last = first + int(limit)
        return (
            f"SELECT * FROM (SELECT relset_q.*, ROW_NUMBER() OVER () AS {LIMIT_OFFSET_ROW_NUM} "
            f"FROM ({sql}) AS relset_q) AS relset_limited "
            f"WHERE {LIMIT_OFFSET_ROW_NUM} > {first} AND {LIMIT_OFFSET_ROW_NUM} <= {last}"
        )

    def case_insensitive(self, expression: str) -> str:
        return f"LOWER({expression})"

    def table_exists_query(self) -> str:
        return (
            "SELECT TABNAME FROM SYSCAT.TABLES "
            "WHERE TABSCHEMA = CURRENT SCHEMA AND TABNAME = ?"
        )


class OracleDialect:
    """Oracle dialect — ``:1, :2`` numbered placeholders, ``ROWNUM`` offset.

    Compatible with ``oracledb`` (python-oracledb) which uses numeric
    bind variables.
    """

    @property
    def name(self) -> str:
        return "oracle"

    @property
    def native_limit_offset(self) -> bool:
        return False

    def placeholder(self, index: int) -> str:
        return f":{index + 1}"

    def placeholders(self, count: int, start: int = 0) -> str:
        return ", ".join(f":{i + 1}" for i in range(start, start + count))

    def limit_offset(self, sql: str, limit: int | None, offset: int | None = None) -> str:
        if limit is None:
            return sql
        first = int(offset or 0)
        last = first + int(limit)
        return (
            f"SELECT * FROM (SELECT relset_q.*, ROWNUM AS {LIMIT_OFFSET_ROW_NUM} "
            f"FROM ({sql}) relset_q) "
            f"WHERE {LIMIT_OFFSET_ROW_NUM} > {first} AND {LIMIT_OFFSET_ROW_NUM} <= {last}"
        )

    def case_insensitive(self, expression: str) -> str:
        return f"LOWER({expression})"

    def table_exists_query(self) -> str:
        return "SELECT TABLE_NAME FROM USER_TABLES WHERE TABLE_NAME = UPPER(:1)"


# =========================================================================
# Registry / Factory
# =========================================================================

# Pre-instantiated singletons (dialects are stateless)
_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),  # alias
    "db2": DB2Dialect(),
    "mysql": MySQLDialect(),
    "oracle": OracleDialect(),
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Raises:
        ValueError: If ``db_type`` is not recognised.

    Example:
        >>> get_dialect("postgresql").placeholders(2)
        '%s, %s'
    """
    key = db_type.lower() if isinstance(db_type, str) else db_type.value
    if key not in _DIALECTS:
        raise ValueError(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'postgres'})}"
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (third-party drivers, test doubles)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "LIMIT_OFFSET_ROW_NUM",
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "DB2Dialect",
    "MySQLDialect",
    "OracleDialect",
    "get_dialect",
    "register_dialect",
]
