"""
Tests for the relset error hierarchy.

Covers category defaults, the fluent context API, serialization for
logging, and the classification helpers.
"""

from __future__ import annotations

import sqlite3

import pytest

from relset.core.errors import (
    AmbiguousRouteError,
    ConfigError,
    DatabaseConnectionError,
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
    UnknownRouteError,
    categorize_error,
    is_expected,
    is_retryable,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "error_cls",
        [OutOfRangeError, AmbiguousRouteError, UnknownRouteError, RecordClassError],
    )
    def test_contract_errors(self, error_cls):
        error = error_cls("bad call")
        assert isinstance(error, ProgrammerError)
        assert error.category == ErrorCategory.PROGRAMMER
        assert error.retryable is False

    @pytest.mark.parametrize("error_cls", [NoResultsError, EmptyCollectionError, NotFoundError])
    def test_data_absence(self, error_cls):
        error = error_cls("nothing here")
        assert isinstance(error, ExpectedError)
        assert error.category == ErrorCategory.DATA
        assert not isinstance(error, ProgrammerError)

    def test_database_errors(self):
        assert QueryError("x").category == ErrorCategory.DATABASE
        assert SeekError("x").retryable is False
        assert DatabaseConnectionError("x").retryable is True

    def test_all_share_base(self):
        for error_cls in (ProgrammerError, ExpectedError, QueryError, ConfigError):
            assert issubclass(error_cls, RelsetError)

    def test_explicit_overrides(self):
        error = QueryError("x", category=ErrorCategory.INTERNAL, retryable=True)
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is True


class TestSubclassAttributes:
    def test_out_of_range_position(self):
        assert OutOfRangeError("bad seek", position=9).position == 9

    def test_ambiguous_routes(self):
        error = AmbiguousRouteError("two ways", routes=["author_id", "editor_id"])
        assert error.routes == ["author_id", "editor_id"]
        assert AmbiguousRouteError("two ways").routes == []

    def test_timeout_value(self):
        error = QueryTimeoutError("slow", timeout=2.5)
        assert error.timeout == 2.5
        assert error.retryable is True

    def test_invalid_config(self):
        error = InvalidConfigError("log_level", "LOUD")
        assert error.key == "log_level"
        assert error.message == "Invalid configuration for log_level: 'LOUD'"
        assert error.category == ErrorCategory.CONFIG


class TestContext:
    def test_known_fields_and_metadata(self):
        error = UnknownRouteError("no route").with_context(table="posts", related_table="users", limit=3)
        assert error.context.table == "posts"
        assert error.context.related_table == "users"
        assert error.context.metadata == {"limit": 3}

    def test_with_context_returns_self(self):
        error = ProgrammerError("x")
        assert error.with_context(route="author_id") is error

    def test_context_dict_skips_unset(self):
        context = ErrorContext(table="tags", metadata={"rows": 2})
        assert context.to_dict() == {"table": "tags", "rows": 2}


class TestSerialization:
    def test_to_dict(self):
        cause = sqlite3.OperationalError("no such table: nope")
        error = QueryError("Query failed", cause=cause).with_context(sql="SELECT * FROM nope")
        assert error.to_dict() == {
            "error_type": "QueryError",
            "message": "Query failed",
            "category": "DATABASE",
            "retryable": False,
            "context": {"sql": "SELECT * FROM nope"},
            "cause": "no such table: nope",
        }

    def test_cause_is_chained(self):
        cause = ValueError("inner")
        error = QueryError("outer", cause=cause)
        assert error.__cause__ is cause

    def test_repr(self):
        assert repr(NotFoundError("gone")) == "NotFoundError('gone', category=DATA)"


class TestHelpers:
    def test_is_retryable(self):
        assert is_retryable(QueryTimeoutError("slow")) is True
        assert is_retryable(QueryError("bad")) is False
        assert is_retryable(ConnectionError()) is True
        assert is_retryable(KeyError()) is False

    def test_is_expected(self):
        assert is_expected(NoResultsError("none")) is True
        assert is_expected(ProgrammerError("bug")) is False
        assert is_expected(LookupError()) is False

    @pytest.mark.parametrize(
        ("error", "category"),
        [
            (EmptyCollectionError("x"), ErrorCategory.DATA),
            (TypeError(), ErrorCategory.PROGRAMMER),
            (TimeoutError(), ErrorCategory.DATABASE),
            (RuntimeError(), ErrorCategory.UNKNOWN),
        ],
    )
    def test_categorize(self, error, category):
        assert categorize_error(error) == category
