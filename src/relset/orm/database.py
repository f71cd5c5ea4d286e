"""Database: executes SQL through an adapter and returns ResultCursors.

This is the single point where driver exceptions become relset errors,
per-statement timeouts are applied, and executed statements are logged
and counted.

Examples:
    >>> from relset.core.adapters import SQLiteAdapter
    >>> db = Database(SQLiteAdapter())
    >>> db.query("CREATE TABLE posts (id INTEGER PRIMARY KEY, title TEXT)")
    >>> cursor = db.query("SELECT * FROM posts WHERE id = ?", (1,))
    >>> cursor.returned_rows
    0
"""

from __future__ import annotations

import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from relset.core.adapters import DatabaseAdapter, adapter_from_url
from relset.core.dialect import Dialect
from relset.core.errors import QueryError, QueryTimeoutError, RelsetError
from relset.core.handles import ArrayHandle
from relset.core.logging import get_logger
from relset.orm.cursor import ResultCursor, RowTransform, get_row_transform

logger = get_logger(__name__)


class Database:
    """Query execution on top of one :class:`DatabaseAdapter`."""

    def __init__(
        self,
        adapter: DatabaseAdapter,
        *,
        query_timeout: float | None = None,
        row_transform: RowTransform | None = None,
    ):
        self._adapter = adapter
        self._query_timeout = adapter.config.query_timeout if query_timeout is None else query_timeout
        self._row_transform = row_transform or get_row_transform(adapter.driver_name)
        self._query_count = 0

    @classmethod
    def from_url(cls, url: str, *, query_timeout: float | None = None) -> Database:
        return cls(adapter_from_url(url, query_timeout=query_timeout), query_timeout=query_timeout)

    @property
    def adapter(self) -> DatabaseAdapter:
        return self._adapter

    @property
    def dialect(self) -> Dialect:
        return self._adapter.dialect

    @property
    def driver_name(self) -> str:
        return self._adapter.driver_name

    @property
    def query_timeout(self) -> float:
        return self._query_timeout

    @property
    def query_count(self) -> int:
        """Statements executed since creation or the last reset."""
        return self._query_count

    def reset_query_count(self) -> None:
        self._query_count = 0

    def query(self, sql: str, params: Sequence[Any] = ()) -> ResultCursor:
        """
        Execute ``sql`` and return a cursor over its result.

        Raises:
            QueryTimeoutError: The statement exceeded ``query_timeout``.
            QueryError: The driver rejected the statement.
        """
        params = tuple(params)
        conn = self._adapter.get_connection()
        start = time.perf_counter()
        self._query_count += 1

        try:
            with self._adapter.query_timeout(conn, self._query_timeout):
                dbapi_cursor = self._adapter.execute(sql, params)
                if dbapi_cursor.description is None:
                    handle = ArrayHandle([])
                    returned_rows = 0
                    affected_rows = max(dbapi_cursor.rowcount or 0, 0)
                else:
                    handle = self._adapter.open_handle(dbapi_cursor)
                    returned_rows = len(handle)
                    affected_rows = 0
        except RelsetError:
            raise
        except Exception as e:
            elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
            if self._adapter.is_timeout_error(e):
                logger.warning("query_timeout", sql=sql, timeout=self._query_timeout, elapsed_ms=elapsed_ms)
                raise QueryTimeoutError(
                    f"Query exceeded the {self._query_timeout}s timeout",
                    timeout=self._query_timeout,
                    cause=e,
                ).with_context(sql=sql) from e
            logger.warning("query_failed", sql=sql, error=str(e), elapsed_ms=elapsed_ms)
            raise QueryError(f"Error executing query: {e}", cause=e).with_context(sql=sql) from e

        cursor = ResultCursor(driver=self._adapter.driver_name, row_transform=self._row_transform)
        cursor.set_result(handle)
        cursor.set_sql(sql)
        cursor.set_params(params)
        cursor.set_affected_rows(affected_rows)
        cursor.set_returned_rows(returned_rows)
        cursor.set_auto_incremented_value(self._adapter.last_insert_id(dbapi_cursor))
        # Buffered rows are already copied out; scrollable handles read from the live cursor.
        if isinstance(handle, ArrayHandle):
            dbapi_cursor.close()

        logger.debug(
            "query_executed",
            sql=sql,
            returned_rows=cursor.returned_rows,
            affected_rows=cursor.affected_rows,
            elapsed_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return cursor

    def translated_query(
        self,
        sql: str,
        params: Sequence[Any] = (),
        *,
        limit: int | None = None,
        offset: int | None = None,
    ) -> ResultCursor:
        """Execute ``sql`` restricted by ``limit``/``offset`` in the engine's dialect."""
        translated = self.dialect.limit_offset(sql, limit, offset)
        cursor = self.query(translated, params)
        if translated != sql:
            cursor.set_untranslated_sql(sql)
        return cursor

    @contextmanager
    def transaction(self) -> Iterator[Database]:
        """Run the enclosed queries in one transaction."""
        with self._adapter.transaction():
            yield self

    def commit(self) -> None:
        self._adapter.get_connection().commit()

    def close(self) -> None:
        self._adapter.disconnect()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


__all__ = ["Database"]
