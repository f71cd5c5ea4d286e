"""Tests for structured logging setup and scoped logging context."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from relset.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)


@pytest.fixture(autouse=True)
def clean_context():
    clear_context()
    yield
    clear_context()


def last_message(caplog) -> str:
    return caplog.records[-1].getMessage()


class TestConfigureLogging:
    def test_json_output(self, caplog):
        caplog.set_level(logging.DEBUG)
        configure_logging(level="DEBUG", json_format=True)
        get_logger("relset.tests").info("collection_built", record_class="Post", rows=3)

        payload = json.loads(last_message(caplog))
        assert payload["event"] == "collection_built"
        assert payload["rows"] == 3
        assert payload["log.level"] == "info"
        assert payload["logger"] == "relset.tests"
        assert payload["service.name"] == "relset"
        assert "@timestamp" in payload

    def test_custom_service_without_timestamp(self, caplog):
        caplog.set_level(logging.DEBUG)
        configure_logging(json_format=True, service="blog-api", add_timestamp=False)
        get_logger("relset.tests").warning("query_failed")

        payload = json.loads(last_message(caplog))
        assert payload["service.name"] == "blog-api"
        assert "@timestamp" not in payload

    def test_level_filters_events(self, caplog):
        caplog.set_level(logging.DEBUG)
        configure_logging(level="warning", json_format=True)
        logger = get_logger("relset.tests")
        logger.debug("query_executed")
        logger.error("query_failed")
        events = [json.loads(record.getMessage())["event"] for record in caplog.records]
        assert events == ["query_failed"]

    def test_console_output(self, caplog):
        caplog.set_level(logging.DEBUG)
        configure_logging(json_format=False)
        get_logger("relset.tests").info("preload_issued", related_table="tags")
        message = last_message(caplog)
        assert "preload_issued" in message
        assert "related_table" in message


class TestContext:
    def test_bind_and_unbind(self):
        bind_context(request_id="abc123", user="ann")
        assert structlog.contextvars.get_contextvars() == {"request_id": "abc123", "user": "ann"}
        unbind_context("user")
        assert structlog.contextvars.get_contextvars() == {"request_id": "abc123"}

    def test_log_context_is_scoped(self):
        bind_context(service_region="eu")
        with LogContext(request_id="abc123") as scope:
            assert isinstance(scope, LogContext)
            assert structlog.contextvars.get_contextvars()["request_id"] == "abc123"
        assert structlog.contextvars.get_contextvars() == {"service_region": "eu"}

    def test_bound_context_reaches_output(self, caplog):
        caplog.set_level(logging.DEBUG)
        configure_logging(json_format=True)
        with LogContext(request_id="abc123"):
            get_logger("relset.tests").info("record_loaded")
        assert json.loads(last_message(caplog))["request_id"] == "abc123"
