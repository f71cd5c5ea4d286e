"""PostgreSQL database adapter.

Uses ``psycopg2``.  Result sets are read through the driver cursor with
``cursor.scroll(n, mode="absolute")`` instead of being copied into a list.

Install the driver::

    pip install psycopg2-binary
    # or:  pip install relset[postgresql]
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from relset.core.errors import ConfigError, DatabaseConnectionError
from relset.core.handles import ScrollableCursorHandle
from relset.core.protocols import Connection, RowHandle

from .base import DatabaseAdapter
from .types import DatabaseConfig, DatabaseType

# SQLSTATE for "canceling statement due to statement timeout"
_QUERY_CANCELED = "57014"


class PostgreSQLAdapter(DatabaseAdapter):
    """
    PostgreSQL database adapter.

    A connection is checked out of a psycopg2 pool on first use and held
    until ``disconnect()``.
    """

    driver_name = "psycopg2"

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        database: str = "",
        username: str | None = None,
        password: str | None = None,
        *,
        pool_size: int = 5,
        query_timeout: float = 30.0,
        **kwargs: Any,
    ):
        config = DatabaseConfig(
            db_type=DatabaseType.POSTGRESQL,
            host=host,
            port=port,
            database=database,
            username=username,
            password=password,
            pool_size=pool_size,
            query_timeout=query_timeout,
            options=kwargs,
        )
        super().__init__(config)
        self._pool: Any = None
        self._conn: Any = None

    def connect(self) -> None:
        """Connect to PostgreSQL database."""
        try:
            import psycopg2
            import psycopg2.pool
        except ImportError:
            raise ConfigError(
                "psycopg2 is required for PostgreSQL. Install with: pip install relset[postgresql]"
            ) from None

        try:
            self._pool = psycopg2.pool.ThreadedConnectionPool(
                minconn=1,
                maxconn=self._config.pool_size,
                host=self._config.host,
                port=self._config.port,
                database=self._config.database,
                user=self._config.username,
                password=self._config.password,
                connect_timeout=self._config.connect_timeout,
                **self._config.options,
            )
            self._connected = True
        except psycopg2.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to PostgreSQL: {e}",
                cause=e,
            ) from e

    def disconnect(self) -> None:
        """Return the held connection and close the pool."""
        if self._pool:
            if self._conn is not None:
                self._pool.putconn(self._conn)
                self._conn = None
            self._pool.closeall()
            self._pool = None
            self._connected = False

    def get_connection(self) -> Connection:
        """Get the held connection, checking one out of the pool if needed."""
        if not self._pool:
            self.connect()
        if self._conn is None:
            self._conn = self._pool.getconn()
        return self._conn

    def open_handle(self, cursor: Any) -> RowHandle:
        return ScrollableCursorHandle(cursor)

    @contextmanager
    def query_timeout(self, conn: Any, seconds: float | None) -> Iterator[None]:
        if not seconds:
            yield
            return

        with conn.cursor() as cur:
            cur.execute("SET statement_timeout = %s", (int(seconds * 1000),))
        try:
            yield
        finally:
            # The reset fails inside an aborted transaction; the next
            # statement's SET replaces the value anyway.
            if conn.get_transaction_status() != _transaction_status_inerror():
                with conn.cursor() as cur:
                    cur.execute("SET statement_timeout = 0")

    def is_timeout_error(self, error: Exception) -> bool:
        return getattr(error, "pgcode", None) == _QUERY_CANCELED


def _transaction_status_inerror() -> int:
    from psycopg2.extensions import TRANSACTION_STATUS_INERROR

    return TRANSACTION_STATUS_INERROR


__all__ = [
    "PostgreSQLAdapter",
]
