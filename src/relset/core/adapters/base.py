"""Database adapter base class.

Manifesto:
    All database adapters share a common lifecycle (connect/disconnect),
    statement execution, and dialect management.  The abstract base class
    defines the interface contract so the ORM never depends on a specific
    database vendor.

Features:
    - Abstract ``connect()``, ``disconnect()``, ``get_connection()``, ``transaction()``
    - ``open_handle()`` turns an executed DB-API cursor into a row handle
    - ``query_timeout()`` scopes a per-statement timeout to one execution
    - Context-manager protocol for connection lifecycle

Tags:
    relset, database, abstract-base, adapter-pattern
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from relset.core.dialect import Dialect, get_dialect
from relset.core.handles import ArrayHandle
from relset.core.protocols import Connection, RowHandle

from .types import DatabaseConfig, DatabaseType


class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    Every adapter keeps one connection for its lifetime, so statements run
    by the same adapter share transaction state.
    """

    #: Name used to look up driver-specific row transforms.
    driver_name: str = "dbapi"

    def __init__(self, config: DatabaseConfig):
        self._config = config
        self._connected = False
        self._dialect: Dialect = get_dialect(config.db_type.value)

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    @property
    def dialect(self) -> Dialect:
        """SQL dialect for this adapter's database type."""
        return self._dialect

    @property
    def db_type(self) -> DatabaseType:
        """Database type."""
        return self._config.db_type

    @property
    def is_connected(self) -> bool:
        """Whether adapter is connected."""
        return self._connected

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to database."""
        ...

    @abstractmethod
    def disconnect(self) -> None:
        """Close connection to database."""
        ...

    @abstractmethod
    def get_connection(self) -> Connection:
        """Get the adapter's connection, connecting on first use."""
        ...

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Commit on success, roll back on any exception."""
        conn = self.get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute SQL and return the executed DB-API cursor."""
        cursor = self.get_connection().cursor()
        cursor.execute(sql, params)
        return cursor

    def open_handle(self, cursor: Any) -> RowHandle:
        """Wrap an executed cursor that produced a result set."""
        return ArrayHandle.from_dbapi(cursor)

    def last_insert_id(self, cursor: Any) -> Any:
        """Auto-incremented value of the last INSERT, if the driver reports one."""
        return getattr(cursor, "lastrowid", None)

    @contextmanager
    def query_timeout(self, conn: Any, seconds: float | None) -> Iterator[None]:  # noqa: ARG002
        """Limit statements executed inside the block to ``seconds``.

        The base implementation does not enforce anything.
        """
        yield

    def is_timeout_error(self, error: Exception) -> bool:  # noqa: ARG002
        """Whether a driver exception means the statement hit its timeout."""
        return False

    def to_sqlalchemy_url(self) -> str:
        return self._config.to_sqlalchemy_url()

    def __enter__(self) -> DatabaseAdapter:
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.disconnect()


__all__ = [
    "DatabaseAdapter",
]
