"""
Canonical protocol definitions for relset.

Every module that needs a Connection, a driver row handle, or a schema
introspector imports the shape from here.

Manifesto:
    Protocols define contracts without inheritance. They enable:
    - **Decoupling:** the cursor depends on a row-handle shape, not a driver
    - **Testability:** an in-memory list of rows is a complete driver
    - **Portability:** the same ORM code on SQLite, PostgreSQL, MySQL, ...

Architecture:
    ::

        protocols.py
        ├── Connection          — sync DB-API connection (sqlite3, psycopg2, ...)
        ├── RowHandle           — positioned access to one executed query's rows
        └── SchemaIntrospector  — primary keys, relationships, column types

    Consumers:
        core/adapters, orm/database.py, orm/cursor.py, orm/schema.py

Tags:
    protocol, connection, cursor, schema, relset
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """
    Minimal SYNCHRONOUS connection interface (DB-API 2.0 subset).

    Examples:
        >>> cursor = conn.execute("SELECT * FROM posts WHERE id = ?", (1,))
        >>> conn.commit()
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute SQL statement with optional parameters."""
        ...

    def commit(self) -> None:
        """Commit current transaction."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction."""
        ...


@runtime_checkable
class RowHandle(Protocol):
    """
    Raw driver handle for one executed query.

    ``ResultCursor`` owns the pointer bookkeeping; a handle only needs to
    return the row at a position and reposition itself.  Buffered drivers
    implement ``seek`` as a no-op that returns ``True``.
    """

    def fetch(self, position: int) -> Mapping[str, Any]:
        """Return the row at ``position`` as a column → value mapping."""
        ...

    def seek(self, position: int) -> bool:
        """Reposition to ``position``; return ``False`` if the driver failed."""
        ...

    def close(self) -> None:
        """Release driver resources."""
        ...


@runtime_checkable
class SchemaIntrospector(Protocol):
    """
    Schema metadata consumed by the relationship layer.

    ``kind`` for ``get_keys`` is ``"primary"``, ``"foreign"`` or ``"unique"``.
    ``get_relationships`` returns a mapping with the keys ``one-to-one``,
    ``one-to-many``, ``many-to-one`` and ``many-to-many`` (or the single
    list for ``kind``).
    """

    def get_keys(self, table: str, kind: str = "primary") -> list[Any]:
        ...

    def get_relationships(
        self, table: str, kind: str | None = None
    ) -> Any:
        ...

    def get_column_type(self, table: str, column: str) -> str | None:
        ...


__all__ = [
    "Connection",
    "RowHandle",
    "SchemaIntrospector",
]
