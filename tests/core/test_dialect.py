"""Tests for the Dialect abstraction layer."""

from __future__ import annotations

import pytest

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

# =========================================================================
# Fixtures
# =========================================================================


@pytest.fixture(params=["sqlite", "postgresql", "db2", "mysql", "oracle"])
def dialect(request: pytest.FixtureRequest) -> Dialect:
    """Parametric fixture: run each test against every dialect."""
    return get_dialect(request.param)


# =========================================================================
# Protocol conformance
# =========================================================================


class TestProtocol:
    def test_satisfies_protocol(self, dialect: Dialect) -> None:
        assert isinstance(dialect, Dialect)

    def test_no_limit_leaves_sql_alone(self, dialect: Dialect) -> None:
        assert dialect.limit_offset("SELECT * FROM posts", None, 5) == "SELECT * FROM posts"

    def test_placeholders_count(self, dialect: Dialect) -> None:
        assert len(dialect.placeholders(3).split(", ")) == 3


# =========================================================================
# Placeholders
# =========================================================================


class TestPlaceholders:
    def test_sqlite(self) -> None:
        assert SQLiteDialect().placeholder(4) == "?"
        assert SQLiteDialect().placeholders(2) == "?, ?"

    def test_postgresql(self) -> None:
        assert PostgreSQLDialect().placeholders(2) == "%s, %s"

    def test_mysql(self) -> None:
        assert MySQLDialect().placeholder(0) == "%s"

    def test_db2(self) -> None:
        assert DB2Dialect().placeholders(2) == "?, ?"

    def test_oracle_is_numbered(self) -> None:
        oracle = OracleDialect()
        assert oracle.placeholder(0) == ":1"
        assert oracle.placeholders(2, start=3) == ":4, :5"


# =========================================================================
# Limit / offset
# =========================================================================


class TestLimitOffset:
    @pytest.mark.parametrize("name", ["sqlite", "postgresql", "mysql"])
    def test_native(self, name: str) -> None:
        dialect = get_dialect(name)
        assert dialect.native_limit_offset is True
        assert dialect.limit_offset("SELECT * FROM posts", 10, 20) == "SELECT * FROM posts LIMIT 10 OFFSET 20"
        assert dialect.limit_offset("SELECT * FROM posts", 10) == "SELECT * FROM posts LIMIT 10"

    def test_db2_row_number(self) -> None:
        sql = DB2Dialect().limit_offset("SELECT * FROM posts", 10, 20)
        assert "ROW_NUMBER() OVER ()" in sql
        assert f"{LIMIT_OFFSET_ROW_NUM} > 20 AND {LIMIT_OFFSET_ROW_NUM} <= 30" in sql
        assert "(SELECT * FROM posts)" in sql

    def test_oracle_rownum(self) -> None:
        oracle = OracleDialect()
        sql = oracle.limit_offset("SELECT * FROM posts", 5)
        assert oracle.native_limit_offset is False
        assert f"ROWNUM AS {LIMIT_OFFSET_ROW_NUM}" in sql
        assert f"{LIMIT_OFFSET_ROW_NUM} > 0 AND {LIMIT_OFFSET_ROW_NUM} <= 5" in sql
        assert " AS relset_q" not in sql


# =========================================================================
# Case-insensitive comparison and registry
# =========================================================================


class TestCaseInsensitive:
    def test_lower_wrapping(self) -> None:
        assert SQLiteDialect().case_insensitive("posts.title") == "LOWER(posts.title)"
        assert OracleDialect().case_insensitive("posts.title") == "LOWER(posts.title)"

    def test_mysql_collation_is_already_insensitive(self) -> None:
        assert MySQLDialect().case_insensitive("posts.title") == "posts.title"


class TestRegistry:
    def test_postgres_alias(self) -> None:
        assert isinstance(get_dialect("postgres"), PostgreSQLDialect)

    def test_case_insensitive_lookup(self) -> None:
        assert isinstance(get_dialect("SQLite"), SQLiteDialect)

    def test_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown dialect"):
            get_dialect("mongodb")

    def test_register_custom(self) -> None:
        custom = SQLiteDialect()
        register_dialect("Custom", custom)
        assert get_dialect("custom") is custom
