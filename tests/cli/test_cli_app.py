"""Tests for the relset CLI (``relset routes`` / ``relset query``)."""

from __future__ import annotations

import json
import logging

import pytest
import structlog
from typer.testing import CliRunner

from relset import __version__
from relset.cli.app import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr("relset.cli.app.configure_logging", lambda **kwargs: None)
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING))
    yield
    structlog.reset_defaults()


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.output.strip() == f"relset {__version__}"

    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "routes" in result.output
        assert "query" in result.output


class TestRoutes:
    def test_json(self, blog_db_url):
        result = runner.invoke(app, ["routes", "users", "posts", "--database", blog_db_url, "--json"])
        assert result.exit_code == 0, result.output
        rows = json.loads(result.output)
        assert {row["route"] for row in rows} == {"author_id", "editor_id"}
        assert {row["related_table"] for row in rows} == {"posts"}

    def test_many_to_many_table(self, blog_db_url):
        result = runner.invoke(app, ["routes", "posts", "tags", "-d", blog_db_url, "--json"])
        assert result.exit_code == 0, result.output
        [row] = json.loads(result.output)
        assert row["join_table"] == "post_tags"

    def test_table_without_relationships(self, blog_db_url):
        result = runner.invoke(app, ["routes", "enrollments", "-d", blog_db_url])
        assert result.exit_code == 0
        assert "No rows." in result.output

    def test_unsupported_database_url(self):
        result = runner.invoke(app, ["routes", "users", "-d", "mongodb://db/blog"])
        assert result.exit_code == 1
        assert "ConfigError" in result.output


class TestQuery:
    def test_limit_offset(self, blog_db_url):
        result = runner.invoke(
            app,
            ["query", "SELECT id FROM posts ORDER BY id", "-d", blog_db_url, "--limit", "2", "--offset", "1", "--json"],
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == [{"id": 2}, {"id": 3}]

    def test_table_output(self, blog_db_url):
        result = runner.invoke(app, ["query", "SELECT name FROM users WHERE id = 1", "-d", blog_db_url])
        assert result.exit_code == 0, result.output
        assert "Ann" in result.output

    def test_no_rows(self, blog_db_url):
        result = runner.invoke(app, ["query", "SELECT * FROM posts WHERE id = 99", "-d", blog_db_url])
        assert result.exit_code == 0
        assert "No rows." in result.output

    def test_update_reports_affected_rows_and_commits(self, blog_db_url):
        result = runner.invoke(app, ["query", "UPDATE posts SET status = 'live' WHERE id = 3", "-d", blog_db_url])
        assert result.exit_code == 0, result.output
        assert "1 row(s) affected" in result.output

        check = runner.invoke(
            app, ["query", "SELECT count(*) AS live FROM posts WHERE status = 'live'", "-d", blog_db_url, "--json"]
        )
        assert json.loads(check.output) == [{"live": 4}]

    def test_query_error_exits_with_status_1(self, blog_db_url):
        result = runner.invoke(app, ["query", "SELECT * FROM nope", "-d", blog_db_url])
        assert result.exit_code == 1
        assert "QueryError" in result.output
