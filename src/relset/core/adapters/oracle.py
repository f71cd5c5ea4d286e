"""Oracle database adapter.

Uses ``oracledb`` (python-oracledb).  Oracle uses **numeric** (``:1``,
``:2``) placeholder style.

Install the driver::

    pip install oracledb
    # or:  pip install relset[oracle]

This adapter is import-guarded: if ``oracledb`` is not installed a
clear :class:`~relset.core.errors.ConfigError` is raised at
``connect()`` time.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from relset.core.errors import ConfigError, DatabaseConnectionError
from relset.core.handles import ArrayHandle
from relset.core.protocols import Connection, RowHandle

from .base import DatabaseAdapter
from .types import DatabaseConfig, DatabaseType

# DPI-1067: call timeout exceeded; ORA-03156: OCI call timed out
_TIMEOUT_CODES = ("DPI-1067", "ORA-03156")


class OracleAdapter(DatabaseAdapter):
    """Oracle database adapter.

    A connection is acquired from an ``oracledb`` pool on first use and
    released on ``disconnect()``.  Column names are lower-cased.
    """

    driver_name = "oracledb"

    def __init__(
        self,
        host: str = "localhost",
        port: int = 1521,
        database: str = "",  # service name
        username: str | None = None,
        password: str | None = None,
        *,
        pool_size: int = 5,
        query_timeout: float = 30.0,
        **kwargs: Any,
    ):
        config = DatabaseConfig(
            db_type=DatabaseType.ORACLE,
            host=host,
            port=port,
            database=database,
            username=username,
            password=password,
            pool_size=pool_size,
            query_timeout=query_timeout,
            options=kwargs or {},
        )
        super().__init__(config)
        self._pool: Any = None
        self._conn: Any = None

    def connect(self) -> None:
        """Connect to Oracle database."""
        try:
            import oracledb
        except ImportError:
            raise ConfigError(
                "oracledb is required for Oracle. Install with: pip install relset[oracle]"
            ) from None

        try:
            dsn = oracledb.makedsn(
                self._config.host,
                self._config.port,
                service_name=self._config.database,
            )
            self._pool = oracledb.create_pool(
                user=self._config.username,
                password=self._config.password,
                dsn=dsn,
                min=1,
                max=self._config.pool_size,
                increment=1,
            )
            self._connected = True
        except Exception as e:
            raise DatabaseConnectionError(
                f"Failed to connect to Oracle: {e}",
                cause=e,
            ) from e

    def disconnect(self) -> None:
        """Release the held connection and close the pool."""
        if self._pool:
            if self._conn is not None:
                self._pool.release(self._conn)
                self._conn = None
            self._pool.close()
            self._pool = None
            self._connected = False

    def get_connection(self) -> Connection:
        """Get the held connection, acquiring one from the pool if needed."""
        if not self._pool:
            self.connect()
        if self._conn is None:
            self._conn = self._pool.acquire()
        return self._conn

    def open_handle(self, cursor: Any) -> RowHandle:
        return ArrayHandle.from_dbapi(cursor, lowercase=True)

    @contextmanager
    def query_timeout(self, conn: Any, seconds: float | None) -> Iterator[None]:
        previous = conn.call_timeout
        conn.call_timeout = int(seconds * 1000) if seconds else 0
        try:
            yield
        finally:
            conn.call_timeout = previous

    def is_timeout_error(self, error: Exception) -> bool:
        message = str(error)
        return any(code in message for code in _TIMEOUT_CODES)


__all__ = [
    "OracleAdapter",
]
