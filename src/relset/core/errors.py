"""
Structured error types for relset.

Every failure raised by relset belongs to one of two families, and callers
are expected to treat them very differently:

- **Contract errors** (``ProgrammerError`` and subclasses): invalid
  arguments, unresolved record classes, ambiguous or unknown relationship
  routes, out-of-range cursor positioning, ``GROUP BY`` combined with
  preloading.  These are bugs in the calling code.  They abort the current
  operation and are not meant to be caught deep in business logic.
- **Data-absence conditions** (``ExpectedError`` and subclasses): "no rows
  returned or affected", "the collection is empty", "no record with that
  primary key".  These are expected outcomes that calling code branches on
  to present a "not found" path.

Database failures (driver exceptions, timeouts) form a third branch so they
can be logged and alerted on separately.

Manifesto:
    - **Typed Error Hierarchy:** Distinct types for bugs vs. absent data
    - **Rich Context:** Errors carry table/route/sql for logging
    - **Error Chaining:** Driver exceptions are preserved as ``cause``
    - **No Retries:** ``retryable`` is metadata only; nothing retries

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       RelsetError                               │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │  ProgrammerError      ExpectedError        DatabaseError        │
        │  (PROGRAMMER)         (DATA)               (DATABASE)           │
        │       │                    │                    │               │
        │  OutOfRangeError      NoResultsError       QueryError           │
        │  AmbiguousRouteError  EmptyCollectionError SeekError            │
        │  UnknownRouteError    NotFoundError                             │
        │  RecordClassError                                               │
        │                                                                 │
        │  TransientError       ConfigError                               │
        │  (DATABASE, retry)    (CONFIG)                                  │
        │       │                    │                                    │
        │  DatabaseConnectionError  InvalidConfigError                    │
        │  QueryTimeoutError                                              │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> try:
    ...     cursor.fetch_row()
    ... except NoResultsError:
    ...     show_not_found()

    >>> raise AmbiguousRouteError(
    ...     "There is more than one route for posts to users"
    ... ).with_context(table="posts", related_table="users")

Tags:
    error-handling, exception-hierarchy, error-context, relset
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Attributes:
        PROGRAMMER: Contract violations, bugs in calling code
        DATA: Expected absence of data (no rows, empty collection)
        DATABASE: Driver, connection and query failures
        CONFIG: Missing or invalid configuration
        INTERNAL: Unexpected internal state
        UNKNOWN: Uncategorized errors
    """

    PROGRAMMER = "PROGRAMMER"
    DATA = "DATA"
    DATABASE = "DATABASE"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only fields that were set show up in ``to_dict()``, so the output can be
    passed straight to a structured logger.

    Attributes:
        table: Table the failing operation was working on
        related_table: Related table for relationship operations
        route: Relationship route, when one was involved
        sql: SQL text of the failing query
        record_class: Record class name for collection operations
        metadata: Additional key-value pairs
    """

    table: str | None = None
    related_table: str | None = None
    route: str | None = None
    sql: str | None = None
    record_class: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["table", "related_table", "route", "sql", "record_class"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class RelsetError(Exception):
    """
    Base exception for all relset errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that
    raising sites only need to supply a message.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> RelsetError:
        """
        Add context to this error (fluent API).

        Usage:
            raise UnknownRouteError("...").with_context(
                table="posts",
                related_table="tags",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONTRACT / PROGRAMMER ERRORS
# =============================================================================


class ProgrammerError(RelsetError):
    """
    The calling code broke a contract.

    Never retryable and never a runtime condition to branch on: fix the
    call site instead.
    """

    default_category = ErrorCategory.PROGRAMMER
    default_retryable = False


class OutOfRangeError(ProgrammerError):
    """A cursor was positioned or read outside ``[0, returned_rows)``."""

    def __init__(self, message: str, *, position: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.position = position


class AmbiguousRouteError(ProgrammerError):
    """More than one relationship connects two tables and no route was given."""

    def __init__(self, message: str, *, routes: list[str] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.routes = routes or []


class UnknownRouteError(ProgrammerError):
    """No relationship (or no relationship with the given route) exists."""

    pass


class RecordClassError(ProgrammerError):
    """A record class could not be resolved."""

    pass


# =============================================================================
# DATA-ABSENCE CONDITIONS (Expected)
# =============================================================================


class ExpectedError(RelsetError):
    """
    An expected, catchable outcome rather than a failure.

    Calling code should catch these to render a "not found" path.
    """

    default_category = ErrorCategory.DATA
    default_retryable = False


class NoResultsError(ExpectedError):
    """The query returned (or affected) no rows."""

    pass


class EmptyCollectionError(ExpectedError):
    """A record collection contains no records."""

    pass


class NotFoundError(ExpectedError):
    """No record exists for the requested primary key."""

    pass


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(RelsetError):
    """Database query or driver error."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class QueryError(DatabaseError):
    """The driver rejected or failed to run a SQL statement."""

    pass


class SeekError(DatabaseError):
    """The driver handle failed to reposition to a valid row."""

    pass


class TransientError(RelsetError):
    """
    Temporary database condition.

    ``retryable`` is set so that callers and alerting can tell these apart,
    but relset itself never retries.
    """

    default_category = ErrorCategory.DATABASE
    default_retryable = True


class DatabaseConnectionError(TransientError):
    """Failed to connect to the database."""

    pass


class QueryTimeoutError(TransientError):
    """A query exceeded the configured timeout."""

    def __init__(self, message: str, *, timeout: float | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.timeout = timeout


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(RelsetError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is flagged retryable."""
    if isinstance(error, RelsetError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


def is_expected(error: Exception) -> bool:
    """Check if an error is a data-absence condition rather than a failure."""
    return isinstance(error, ExpectedError)


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, RelsetError):
        return error.category
    if isinstance(error, (TypeError, ValueError, AttributeError)):
        return ErrorCategory.PROGRAMMER
    if isinstance(error, (ConnectionError, TimeoutError)):
        return ErrorCategory.DATABASE
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "RelsetError",
    # Contract
    "ProgrammerError",
    "OutOfRangeError",
    "AmbiguousRouteError",
    "UnknownRouteError",
    "RecordClassError",
    # Data absence
    "ExpectedError",
    "NoResultsError",
    "EmptyCollectionError",
    "NotFoundError",
    # Database
    "DatabaseError",
    "QueryError",
    "SeekError",
    "TransientError",
    "DatabaseConnectionError",
    "QueryTimeoutError",
    # Config
    "ConfigError",
    "InvalidConfigError",
    # Utilities
    "is_retryable",
    "is_expected",
    "categorize_error",
]
