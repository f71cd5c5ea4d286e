"""IBM DB2 database adapter.

Uses ``ibm_db_dbi``, the DB-API 2.0 interface from the ``ibm-db``
package.  DB2 uses **qmark** (``?``) placeholder style natively and has
no ``LIMIT ... OFFSET``; see :class:`~relset.core.dialect.DB2Dialect`.

Install the driver::

    pip install ibm-db
    # or:  pip install relset[db2]
"""

from __future__ import annotations

from typing import Any

from relset.core.errors import ConfigError, DatabaseConnectionError
from relset.core.handles import ArrayHandle
from relset.core.protocols import Connection, RowHandle

from .base import DatabaseAdapter
from .types import DatabaseConfig, DatabaseType


class DB2Adapter(DatabaseAdapter):
    """IBM DB2 database adapter.

    DB2 reports column names in upper case; rows are keyed by the
    lower-cased names so records see the same columns on every backend.
    """

    driver_name = "ibm_db_dbi"

    def __init__(
        self,
        host: str = "localhost",
        port: int = 50000,
        database: str = "",
        username: str | None = None,
        password: str | None = None,
        *,
        schema: str | None = None,
        **kwargs: Any,
    ):
        config = DatabaseConfig(
            db_type=DatabaseType.DB2,
            host=host,
            port=port,
            database=database,
            username=username,
            password=password,
            options={**(kwargs or {}), **({"schema": schema} if schema else {})},
        )
        super().__init__(config)
        self._conn: Any = None

    def connect(self) -> None:
        """Connect to DB2 database via ibm_db_dbi."""
        try:
            import ibm_db
            import ibm_db_dbi
        except ImportError:
            raise ConfigError(
                "ibm-db is required for DB2. Install with: pip install relset[db2]"
            ) from None

        try:
            ibm_conn = ibm_db.connect(self._config.to_connection_string(), "", "")
            self._conn = ibm_db_dbi.Connection(ibm_conn)

            schema = self._config.options.get("schema")
            if schema:
                self._conn.cursor().execute(f"SET SCHEMA {schema}")

            self._connected = True
        except Exception as e:
            raise DatabaseConnectionError(
                f"Failed to connect to DB2: {e}",
                cause=e,
            ) from e

    def disconnect(self) -> None:
        """Close DB2 connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            self._connected = False

    def get_connection(self) -> Connection:
        """Get the DB2 connection."""
        if not self._conn:
            self.connect()
        return self._conn

    def open_handle(self, cursor: Any) -> RowHandle:
        return ArrayHandle.from_dbapi(cursor, lowercase=True)


__all__ = [
    "DB2Adapter",
]
