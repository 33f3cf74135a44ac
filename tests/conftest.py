"""
Pytest fixtures for the catering scheduler test suite.

Provides:
- Session-wide structured logging and a ``captured_logs`` fixture
- In-memory SQLite engine / session factory with every table created
- A DeterministicClock on naive UTC datetimes (SQLite strips tzinfo)
- Agreement and work item factories
"""

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from catering_kernel.db.engine import create_tables, enable_sqlite_savepoints
from catering_kernel.domain.agreement import Agreement
from catering_kernel.domain.clock import DeterministicClock
from catering_kernel.domain.work_item import WorkItem
from catering_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from catering_kernel.models.agreement import AgreementModel
from catering_kernel.models.work_item import WorkItemModel

# Wednesday
NOW = datetime(2024, 3, 6, 12, 0, 0)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture catering logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "job_run_metrics" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("catering")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(eng)
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock():
    return DeterministicClock(fixed_time=NOW)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_agreement(clock):
    """Build an ACTIVE agreement; override any term by keyword."""

    def _make(**overrides) -> Agreement:
        terms = {
            "provider_id": uuid4(),
            "consumer_id": uuid4(),
            "price_per_unit": Decimal("12.50"),
            "min_daily_quantity": 10,
            "max_daily_quantity": 100,
            "notice_period_hours": 24,
            "weekdays": {1, 2, 3, 4, 5},
            "start_date": date(2024, 1, 1),
            "end_date": None,
            "now": clock.now(),
        }
        terms.update(overrides)
        return Agreement.create(**terms)

    return _make


@pytest.fixture
def persist_agreement(db_session):
    def _persist(agreement: Agreement) -> Agreement:
        db_session.add(AgreementModel.from_dto(agreement))
        db_session.flush()
        return agreement

    return _persist


@pytest.fixture
def persist_work_item(db_session, clock):
    """Insert a PENDING work item for ``agreement`` on ``service_date``."""

    def _persist(agreement: Agreement, service_date: date, **fields) -> WorkItem:
        item = WorkItem.new(agreement.agreement_id, service_date, clock.now())
        if fields:
            from dataclasses import replace

            item = replace(item, **fields)
        db_session.add(WorkItemModel.from_dto(item))
        db_session.flush()
        return item

    return _persist
