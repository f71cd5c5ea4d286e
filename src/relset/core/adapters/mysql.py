"""MySQL database adapter.

Uses ``mysql.connector`` from the ``mysql-connector-python`` package.
MySQL uses **format** (``%s``) placeholder style.

Install the driver::

    pip install mysql-connector-python
    # or:  pip install relset[mysql]

This adapter is import-guarded: if ``mysql.connector`` is not installed
a clear :class:`~relset.core.errors.ConfigError` is raised at
``connect()`` time.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from relset.core.errors import ConfigError, DatabaseConnectionError
from relset.core.protocols import Connection

from .base import DatabaseAdapter
from .types import DatabaseConfig, DatabaseType

# ER_QUERY_TIMEOUT: "Query execution was interrupted, maximum statement execution time exceeded"
_ER_QUERY_TIMEOUT = 3024


class MySQLAdapter(DatabaseAdapter):
    """MySQL / MariaDB database adapter.

    Uses ``mysql.connector`` with connection pooling; result sets are
    buffered.
    """

    driver_name = "mysql.connector"

    def __init__(
        self,
        host: str = "localhost",
        port: int = 3306,
        database: str = "",
        username: str | None = None,
        password: str | None = None,
        *,
        pool_size: int = 5,
        charset: str = "utf8mb4",
        query_timeout: float = 30.0,
        **kwargs: Any,
    ):
        config = DatabaseConfig(
            db_type=DatabaseType.MYSQL,
            host=host,
            port=port,
            database=database,
            username=username,
            password=password,
            pool_size=pool_size,
            query_timeout=query_timeout,
            options={**(kwargs or {}), "charset": charset},
        )
        super().__init__(config)
        self._pool: Any = None
        self._conn: Any = None

    def connect(self) -> None:
        """Connect to MySQL database."""
        try:
            import mysql.connector  # noqa: F401
            from mysql.connector import pooling
        except ImportError:
            raise ConfigError(
                "mysql-connector-python is required for MySQL. "
                "Install with: pip install relset[mysql]"
            ) from None

        try:
            self._pool = pooling.MySQLConnectionPool(
                pool_name="relset_mysql_pool",
                pool_size=self._config.pool_size,
                host=self._config.host,
                port=self._config.port,
                database=self._config.database,
                user=self._config.username,
                password=self._config.password,
                charset=self._config.options.get("charset", "utf8mb4"),
                connect_timeout=self._config.connect_timeout,
                autocommit=False,
            )
            self._connected = True
        except Exception as e:
            raise DatabaseConnectionError(
                f"Failed to connect to MySQL: {e}",
                cause=e,
            ) from e

    def disconnect(self) -> None:
        """Return the held connection to the pool."""
        if self._conn is not None:
            # mysql.connector returns pooled connections on close()
            self._conn.close()
            self._conn = None
        self._pool = None
        self._connected = False

    def get_connection(self) -> Connection:
        """Get the held connection, checking one out of the pool if needed."""
        if not self._pool:
            self.connect()
        if self._conn is None:
            self._conn = self._pool.get_connection()
        return self._conn

    def execute(self, sql: str, params: tuple = ()) -> Any:
        cursor = self.get_connection().cursor(buffered=True)
        cursor.execute(sql, params)
        return cursor

    @contextmanager
    def query_timeout(self, conn: Any, seconds: float | None) -> Iterator[None]:
        if not seconds:
            yield
            return

        cur = conn.cursor()
        cur.execute("SET SESSION MAX_EXECUTION_TIME = %s", (int(seconds * 1000),))
        cur.close()
        try:
            yield
        finally:
            cur = conn.cursor()
            cur.execute("SET SESSION MAX_EXECUTION_TIME = 0")
            cur.close()

    def is_timeout_error(self, error: Exception) -> bool:
        return getattr(error, "errno", None) == _ER_QUERY_TIMEOUT


__all__ = [
    "MySQLAdapter",
]
