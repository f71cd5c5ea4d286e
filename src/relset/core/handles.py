"""Driver row handles.

A row handle wraps the raw result of one executed query and gives the
cursor positioned access to it.  Two shapes cover every supported driver:

- ``ArrayHandle``: rows buffered into a list (sqlite3, mysql.connector,
  ibm_db_dbi, oracledb, and in-memory test data).
- ``ScrollableCursorHandle``: a live DB-API cursor that supports
  ``scroll(n, mode="absolute")`` (psycopg2).

Both satisfy :class:`relset.core.protocols.RowHandle`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from relset.core.logging import get_logger

logger = get_logger(__name__)


def column_names(description: Sequence[Sequence[Any]] | None, *, lowercase: bool = False) -> list[str]:
    """Column names from a DB-API ``cursor.description``."""
    if not description:
        return []
    names = [str(desc[0]) for desc in description]
    return [name.lower() for name in names] if lowercase else names


class ArrayHandle:
    """Rows held in memory; repositioning never fails."""

    def __init__(self, rows: Iterable[Mapping[str, Any]]):
        self._rows = [dict(row) for row in rows]

    @classmethod
    def from_dbapi(cls, cursor: Any, *, lowercase: bool = False) -> ArrayHandle:
        """Buffer every row of an executed DB-API cursor."""
        columns = column_names(cursor.description, lowercase=lowercase)
        return cls(dict(zip(columns, tuple(row), strict=False)) for row in cursor.fetchall())

    def fetch(self, position: int) -> Mapping[str, Any]:
        return self._rows[position]

    def seek(self, position: int) -> bool:  # noqa: ARG002
        return True

    def close(self) -> None:
        self._rows = []

    def __len__(self) -> int:
        return len(self._rows)


class ScrollableCursorHandle:
    """
    Live server-side cursor.

    The driver position is tracked so that sequential reads do not issue a
    scroll for every row.
    """

    def __init__(self, cursor: Any, *, lowercase: bool = False):
        self._cursor = cursor
        self._columns = column_names(cursor.description, lowercase=lowercase)
        self._position = 0
        rowcount = getattr(cursor, "rowcount", -1)
        self._length = rowcount if rowcount and rowcount > 0 else 0

    def fetch(self, position: int) -> Mapping[str, Any]:
        if position != self._position and not self.seek(position):
            raise IndexError(position)
        row = self._cursor.fetchone()
        if row is None:
            raise IndexError(position)
        self._position = position + 1
        return dict(zip(self._columns, tuple(row), strict=False))

    def seek(self, position: int) -> bool:
        try:
            self._cursor.scroll(position, mode="absolute")
        except (IndexError, ValueError) as exc:
            logger.warning("cursor_scroll_failed", position=position, error=str(exc))
            return False
        self._position = position
        return True

    def close(self) -> None:
        self._cursor.close()

    def __len__(self) -> int:
        return self._length


__all__ = [
    "ArrayHandle",
    "ScrollableCursorHandle",
    "column_names",
]
