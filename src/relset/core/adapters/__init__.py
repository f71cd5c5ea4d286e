"""Database adapters -- one interface over five DB-API drivers.

Manifesto:
    The relationship layer generates SQL and reads rows; it must not care
    whether the rows come from SQLite in a test, PostgreSQL in production,
    or DB2/Oracle in an enterprise deployment.

    Each adapter is **import-guarded**: the database driver is only required at
    ``connect()`` time, not at import time.  Install the corresponding extra::

        pip install relset[postgresql]   # psycopg2-binary
        pip install relset[db2]          # ibm-db
        pip install relset[mysql]        # mysql-connector-python
        pip install relset[oracle]       # oracledb

Architecture::

    DatabaseAdapter (base.py)        connect / execute / open_handle / query_timeout
        |-- SQLiteAdapter            stdlib sqlite3 (always available)
        |-- PostgreSQLAdapter        psycopg2 (optional), scrollable cursor
        |-- DB2Adapter               ibm_db_dbi (optional)
        |-- MySQLAdapter             mysql.connector (optional)
        |-- OracleAdapter            oracledb (optional)

    AdapterRegistry (registry.py)    DatabaseType -> adapter class
    DatabaseConfig (types.py)        connection parameters, URL parsing
    DatabaseType (types.py)          Enum of supported backends

Guardrails:
    ❌ ``conn.execute("SELECT * FROM t WHERE id=" + user_input)``
    ✅ ``db.query("SELECT * FROM t WHERE id = ?", (user_input,))``
    ❌ Importing optional drivers at module scope
    ✅ Import-guarded at ``connect()`` time with clear ``ConfigError``

Tags:
    relset, database, adapters, multi-backend, import-guarded,
    registry-pattern, postgresql, sqlite, db2, mysql, oracle
"""

from relset.core.dialect import Dialect, get_dialect
from relset.core.protocols import Connection

from .base import DatabaseAdapter
from .db2 import DB2Adapter
from .mysql import MySQLAdapter
from .oracle import OracleAdapter
from .postgresql import PostgreSQLAdapter
from .registry import AdapterRegistry, adapter_from_url, adapter_registry, get_adapter
from .sqlite import SQLiteAdapter
from .types import DatabaseConfig, DatabaseType

__all__ = [
    # Types
    "DatabaseType",
    "DatabaseConfig",
    # Protocols / Abstractions
    "Connection",
    "Dialect",
    "get_dialect",
    # Base class
    "DatabaseAdapter",
    # Implementations
    "SQLiteAdapter",
    "PostgreSQLAdapter",
    "DB2Adapter",
    "MySQLAdapter",
    "OracleAdapter",
    # Registry
    "AdapterRegistry",
    "adapter_registry",
    "get_adapter",
    "adapter_from_url",
]
