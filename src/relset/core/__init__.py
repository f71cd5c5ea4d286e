"""relset.core -- driver-facing primitives.

Manifesto:
    The ORM layer generates SQL and reads rows through one narrow surface.
    Everything below that surface (drivers, dialect quirks, timeouts,
    configuration, logging, error types) lives here and never imports
    ``relset.orm``.

Architecture::

    Layer 1 -- Type System & Errors
        errors.py          Structured error hierarchy (ProgrammerError, ExpectedError)
        protocols.py       Connection, RowHandle, SchemaIntrospector

    Layer 2 -- Database
        dialect.py         Placeholders, limit/offset translation (5 backends)
        handles.py         ArrayHandle / ScrollableCursorHandle
        adapters/          Database adapters (SQLite -> Oracle)

    Layer 3 -- Cross-Cutting Concerns
        logging.py         Structured logging (structlog)
        settings.py        RelsetSettings (pydantic-settings)

Tags:
    relset, foundation, database, protocol-first
"""

from relset.core.dialect import (
    LIMIT_OFFSET_ROW_NUM,
    DB2Dialect,
    Dialect,
    MySQLDialect,
    OracleDialect,
    PostgreSQLDialect,
    SQLiteDialect,
    get_dialect,
    register_dialect,
)
from relset.core.errors import (
    AmbiguousRouteError,
    ConfigError,
    DatabaseConnectionError,
    DatabaseError,
    EmptyCollectionError,
    ErrorCategory,
    ErrorContext,
    ExpectedError,
    InvalidConfigError,
    NoResultsError,
    NotFoundError,
    OutOfRangeError,
    ProgrammerError,
    QueryError,
    QueryTimeoutError,
    RecordClassError,
    RelsetError,
    SeekError,
    TransientError,
    UnknownRouteError,
    categorize_error,
    is_expected,
    is_retryable,
)
from relset.core.handles import ArrayHandle, ScrollableCursorHandle
from relset.core.logging import configure_logging, get_logger
from relset.core.protocols import Connection, RowHandle, SchemaIntrospector
from relset.core.settings import RelsetSettings

__all__ = [
    # Dialects
    "LIMIT_OFFSET_ROW_NUM",
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "MySQLDialect",
    "DB2Dialect",
    "OracleDialect",
    "get_dialect",
    "register_dialect",
    # Errors
    "ErrorCategory",
    "ErrorContext",
    "RelsetError",
    "ProgrammerError",
    "OutOfRangeError",
    "AmbiguousRouteError",
    "UnknownRouteError",
    "RecordClassError",
    "ExpectedError",
    "NoResultsError",
    "EmptyCollectionError",
    "NotFoundError",
    "DatabaseError",
    "QueryError",
    "SeekError",
    "TransientError",
    "DatabaseConnectionError",
    "QueryTimeoutError",
    "ConfigError",
    "InvalidConfigError",
    "is_retryable",
    "is_expected",
    "categorize_error",
    # Handles / protocols
    "ArrayHandle",
    "ScrollableCursorHandle",
    "Connection",
    "RowHandle",
    "SchemaIntrospector",
    # Cross-cutting
    "configure_logging",
    "get_logger",
    "RelsetSettings",
]
