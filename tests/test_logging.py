"""Tests for the structured logging system (jobclock_kernel/logging_config.py)."""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from jobclock_kernel.exceptions import ClockInTooEarlyError
from jobclock_kernel.logging_config import (
    LogContext,
    OperationTimer,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)

OPENS_AT = datetime(2024, 6, 3, 9, 45, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, restoring the suite's setup afterwards."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        (record,) = _parse_all_logs(stream)
        assert record["message"] == "hello"
        assert record["level"] == "INFO"
        assert record["logger"] == "jobclock_kernel.test"
        assert "ts" in record

    def test_extra_fields_are_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        product_id = uuid4()
        get_logger("test").info(
            "product_used", extra={"product_id": product_id, "used": Decimal("4.00")}
        )

        (record,) = _parse_all_logs(stream)
        assert record["product_id"] == str(product_id)
        assert record["used"] == "4.00"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ClockInTooEarlyError("job-1", 5, OPENS_AT)
        except ClockInTooEarlyError:
            logger.error("clock_in_failed", exc_info=True)

        (record,) = _parse_all_logs(stream)
        assert record["exc_type"] == "ClockInTooEarlyError"
        assert record["exc_code"] == "CLOCK_IN_TOO_EARLY"
        assert record["exc_minutes_remaining"] == 5
        assert "traceback" in record


class TestLogContext:
    def test_bound_fields_appear_and_are_restored(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        with LogContext.bind(job_id="job-1", operation="clock_in"):
            logger.info("inside")
            with LogContext.bind(actor_id="worker-1"):
                logger.info("nested")
        logger.info("outside")

        inside, nested, outside = _parse_all_logs(stream)
        assert inside["job_id"] == "job-1"
        assert inside["operation"] == "clock_in"
        assert nested["actor_id"] == "worker-1"
        assert nested["job_id"] == "job-1"
        assert "job_id" not in outside
        assert "actor_id" not in outside

    def test_set_ignores_none(self):
        LogContext.set(correlation_id="abc")
        LogContext.set(correlation_id=None)
        assert LogContext.get_all() == {"correlation_id": "abc"}


class TestConfigureLogging:
    def test_idempotent(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        assert len(logging.getLogger("jobclock_kernel").handlers) == 1

    def test_does_not_propagate_to_root(self):
        configure_logging()
        assert logging.getLogger("jobclock_kernel").propagate is False

    def test_level_filters(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        logger = get_logger("test")
        logger.info("dropped")
        logger.warning("kept")
        assert [r["message"] for r in _parse_all_logs(stream)] == ["kept"]


class TestOperationTimer:
    def test_started_and_completed_lines(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        timer = OperationTimer(logger, "clock_out", reported_count=2)
        timer.completed(products_reconciled=1)

        started, completed = _parse_all_logs(stream)
        assert started["message"] == "clock_out_started"
        assert started["reported_count"] == 2
        assert completed["message"] == "clock_out_completed"
        assert completed["products_reconciled"] == 1
        assert completed["duration_ms"] >= 0
