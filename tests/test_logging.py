"""
JSON log lines, bound context and logger setup.
"""

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from catering_kernel.exceptions import QuantityOutOfRangeError
from catering_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture
def lines():
    """Install a fresh JSON handler; returns a reader of the emitted records."""
    reset_logging()
    stream = StringIO()
    configure_logging(level=logging.INFO, handler=logging.StreamHandler(stream))
    yield lambda: [json.loads(line) for line in stream.getvalue().splitlines() if line]
    reset_logging()


class TestRecordShape:

    def test_core_fields(self, lines):
        get_logger("batch.jobs").info("job_started")

        record = lines()[0]
        assert record["message"] == "job_started"
        assert record["level"] == "INFO"
        assert record["logger"] == "catering.batch.jobs"
        assert datetime.fromisoformat(record["ts"]).tzinfo is not None

    def test_extra_becomes_top_level_fields(self, lines):
        get_logger("batch.fallback").info(
            "fallback_applied", extra={"applied_quantity": 15, "service_date": "2024-03-05"}
        )

        record = lines()[0]
        assert record["applied_quantity"] == 15
        assert record["service_date"] == "2024-03-05"

    def test_domain_values_serialized(self, lines):
        agreement_id = uuid4()
        get_logger("test").info(
            "values",
            extra={
                "agreement_ref": agreement_id,
                "service_date": date(2024, 3, 8),
                "price": Decimal("12.50"),
                "weekdays": frozenset({5, 1, 3}),
            },
        )

        record = lines()[0]
        assert record["agreement_ref"] == str(agreement_id)
        assert record["service_date"] == "2024-03-08"
        assert record["price"] == "12.50"
        assert record["weekdays"] == [1, 3, 5]

    def test_kernel_error_details(self, lines):
        try:
            raise QuantityOutOfRangeError(120, 10, 100)
        except QuantityOutOfRangeError:
            get_logger("services.work_items").error("confirm_failed", exc_info=True)

        record = lines()[0]
        assert record["exc_type"] == "QuantityOutOfRangeError"
        assert record["exc_code"] == "QUANTITY_OUT_OF_RANGE"
        assert record["exc_quantity"] == 120
        assert record["exc_maximum"] == 100
        assert "Traceback" in record["traceback"]

    def test_plain_exception_has_no_code(self, lines):
        get_logger("test").warning("retry", exc_info=ConnectionError("smtp timeout"))

        record = lines()[0]
        assert record["exc_type"] == "ConnectionError"
        assert record["exc_message"] == "smtp timeout"
        assert "exc_code" not in record

    def test_debug_filtered_at_info(self, lines):
        logger = get_logger("test")
        logger.debug("hidden")
        logger.info("shown")

        assert [r["message"] for r in lines()] == ["shown"]


class TestLogContext:

    def test_bound_fields_on_every_record(self, lines):
        logger = get_logger("batch.jobs")
        with LogContext.bind(job_name="apply_fallback", run_id="run-1"):
            logger.info("job_started")
            logger.info("job_finished")

        assert all(r["job_name"] == "apply_fallback" for r in lines())
        assert all(r["run_id"] == "run-1" for r in lines())

    def test_nested_bind_adds_and_restores(self):
        with LogContext.bind(job_name="generate_work_items"):
            with LogContext.bind(agreement_id="a-1"):
                assert LogContext.get_all() == {
                    "job_name": "generate_work_items",
                    "agreement_id": "a-1",
                }
            assert LogContext.get_all() == {"job_name": "generate_work_items"}
        assert LogContext.get_all() == {}

    def test_inner_bind_shadows_outer_value(self):
        with LogContext.bind(agreement_id="outer"):
            with LogContext.bind(agreement_id="inner"):
                assert LogContext.get_all()["agreement_id"] == "inner"
            assert LogContext.get_all()["agreement_id"] == "outer"

    def test_none_values_ignored_and_values_stringified(self):
        event_id = uuid4()
        with LogContext.bind(event_id=event_id, correlation_id=None):
            assert LogContext.get_all() == {"event_id": str(event_id)}

    def test_restored_when_block_raises(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(work_item_id="w-1"):
                raise RuntimeError("boom")
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError, match="tenant_id"):
            with LogContext.bind(tenant_id="t"):
                pass

    def test_extra_does_not_override_bound_field(self, lines):
        with LogContext.bind(job_name="relay_outbox"):
            get_logger("test").info("x", extra={"job_name": "other"})

        assert lines()[0]["job_name"] == "relay_outbox"


class TestConfigureLogging:

    def test_second_call_is_noop(self, lines):
        configure_logging(handler=logging.StreamHandler(StringIO()))

        handlers = logging.getLogger("catering").handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0].formatter, StructuredFormatter)

    def test_does_not_propagate_to_root(self, lines):
        assert logging.getLogger("catering").propagate is False

    def test_reset_removes_handler(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        reset_logging()

        logger = logging.getLogger("catering")
        assert logger.handlers == []
        assert logger.propagate is True
