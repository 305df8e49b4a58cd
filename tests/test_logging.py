"""
Tests for the logging module.

Tests verify:
- configure_logging passes the chosen renderer and level to structlog
- LogContext binds and unbinds context variables
- log_lines emits one record per line
- SQL executed in a transaction is logged with its values
"""

import logging
from unittest.mock import MagicMock, patch

import pytest
import structlog
from structlog.testing import capture_logs

from sqlspine.conditions import equal
from sqlspine.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    log_lines,
    unbind_context,
)


@pytest.fixture(autouse=True)
def _clean_context():
    clear_context()
    yield
    clear_context()


class TestConfigureLogging:
    @pytest.fixture
    def configure(self):
        with patch("sqlspine.logging.structlog.configure") as configure, patch(
            "sqlspine.logging.logging.basicConfig"
        ):
            yield configure

    def test_json_renderer(self, configure):
        configure_logging(level="DEBUG", json_format=True)
        processors = configure.call_args.kwargs["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert isinstance(processors[0], structlog.processors.TimeStamper)

    def test_console_renderer_without_timestamp(self, configure):
        configure_logging(json_format=False, add_timestamp=False)
        processors = configure.call_args.kwargs["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
        assert not any(isinstance(p, structlog.processors.TimeStamper) for p in processors)

    def test_level_filter(self, configure):
        configure_logging(level="warning", json_format=True)
        wrapper = configure.call_args.kwargs["wrapper_class"]
        assert wrapper is structlog.make_filtering_bound_logger(logging.WARNING)

    def test_level_from_settings(self, configure, monkeypatch):
        monkeypatch.setenv("SQLSPINE_LOG_LEVEL", "error")
        configure_logging(json_format=True)
        wrapper = configure.call_args.kwargs["wrapper_class"]
        assert wrapper is structlog.make_filtering_bound_logger(logging.ERROR)

    def test_explicit_level_wins_over_settings(self, configure, monkeypatch):
        monkeypatch.setenv("SQLSPINE_LOG_LEVEL", "error")
        configure_logging(level="debug", json_format=True)
        wrapper = configure.call_args.kwargs["wrapper_class"]
        assert wrapper is structlog.make_filtering_bound_logger(logging.DEBUG)

    def test_service_name_added(self, configure, monkeypatch):
        monkeypatch.setattr("sqlspine.logging._SERVICE_NAME", "sqlspine")
        configure_logging(service="billing", json_format=True)
        processors = configure.call_args.kwargs["processors"]
        event = {}
        for processor in processors:
            if getattr(processor, "__name__", "") == "_add_service_metadata":
                event = processor(None, "info", event)
        assert event["service.name"] == "billing"


class TestContext:
    def test_log_context_scoped(self):
        with LogContext(tx="Tx1"):
            assert structlog.contextvars.get_contextvars() == {"tx": "Tx1"}
        assert structlog.contextvars.get_contextvars() == {}

    def test_bind_and_unbind(self):
        bind_context(process="node-1", tx="Tx2")
        unbind_context("tx")
        assert structlog.contextvars.get_contextvars() == {"process": "node-1"}


class TestLogLines:
    def test_one_record_per_line(self):
        logger = MagicMock()
        log_lines(logger, "SELECT id \nFROM users;", prefix="Tx1 ")
        assert [c.args[0] for c in logger.debug.call_args_list] == ["Tx1 SELECT id ", "Tx1 FROM users;"]

    def test_level(self):
        logger = MagicMock()
        log_lines(logger, "one", level="info")
        logger.info.assert_called_once_with("one")

    def test_get_logger(self):
        assert get_logger("sqlspine.test") is not None


class TestSqlLogging:
    def test_statement_logged_with_values(self, shop_db, shop):
        with capture_logs() as logs:
            with shop_db.tx() as tx:
                tx.new_select(shop.user_email).where(equal(shop.user_id, "u1")).execute().get_all(
                    lambda r: r.get(shop.user_email)
                )
        events = [entry["event"] for entry in logs]
        prefix = f"{tx} "
        assert f"{prefix}SELECT email " in events
        assert f"{prefix}WHERE id = 'u1';" in events

    def test_result_table_logged(self, shop_db, shop):
        with capture_logs() as logs:
            with shop_db.tx() as tx:
                tx.new_select(shop.user_id).order_asc(shop.user_id).execute().log_all_rows()
        events = [entry["event"] for entry in logs]
        assert f"{tx} +id--+" in events
        assert f"{tx} |'u1'|" in events
        assert f"{tx} |'u2'|" in events
