"""Tests for the structured logging system (inventory_kernel/logging_config.py)."""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from inventory_kernel.exceptions import InsufficientInventoryError
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    """Parse all JSON log lines from a stream."""
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "inventory_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("sale_processed", extra={"sale_id": 42, "quantity": 120})

        record = _parse_log(stream)
        assert record["sale_id"] == 42
        assert record["quantity"] == 120

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="inventory-events:0:7", product_id="PRD001")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "inventory-events:0:7"
        assert record["product_id"] == "PRD001"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        """Kernel exceptions carry .code and structured attributes."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        try:
            raise InsufficientInventoryError("PRD001", available=100, requested=150)
        except InsufficientInventoryError:
            logger.error("sale_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INSUFFICIENT_INVENTORY"
        assert record["exc_type"] == "InsufficientInventoryError"
        assert record["exc_product_id"] == "PRD001"
        assert record["exc_available"] == 100
        assert record["exc_requested"] == 150

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "idempotency_key" not in record

    def test_decimal_and_datetime_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info(
            "with_money",
            extra={
                "total_cost": Decimal("6100.000000000"),
                "at": datetime(2024, 1, 1, tzinfo=timezone.utc),
            },
        )

        record = _parse_log(stream)
        assert record["total_cost"] == "6100.000000000"
        assert record["at"] == "2024-01-01T00:00:00+00:00"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # Default level is INFO
        assert len(logs) == 2
        for record in logs:
            assert "ts" in record
            assert "level" in record
            assert "logger" in record
            assert "message" in record


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", idempotency_key="y")
        assert LogContext.get_all() == {"correlation_id": "x", "idempotency_key": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(product_id="outer")
        with LogContext.bind(product_id="inner"):
            assert LogContext.get_all()["product_id"] == "inner"
        assert LogContext.get_all()["product_id"] == "outer"

    def test_bind_restores_none(self):
        """bind() restores to None if there was no previous value."""
        assert "idempotency_key" not in LogContext.get_all()
        with LogContext.bind(idempotency_key="event:abc"):
            assert LogContext.get_all()["idempotency_key"] == "event:abc"
        assert "idempotency_key" not in LogContext.get_all()

    def test_bind_ignores_none_values(self):
        LogContext.set(product_id="PRD001")
        with LogContext.bind(product_id=None, producer="inventory-events"):
            ctx = LogContext.get_all()
        assert ctx == {"product_id": "PRD001", "producer": "inventory-events"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            idempotency_key="k",
            product_id="p",
            producer="s",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 4
        assert ctx["producer"] == "s"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        handlers = logging.getLogger("inventory_kernel").handlers
        assert h1 in handlers
        assert h2 not in handlers

    def test_get_logger_returns_child(self):
        logger = get_logger("services.sale_coordinator")
        assert logger.name == "inventory_kernel.services.sale_coordinator"

    def test_logger_hierarchy(self):
        """Child loggers inherit the inventory_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("deep.nested.module")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "inventory_kernel.deep.nested.module"
