"""
Pytest fixtures for the garage reconciliation test suite.

Provides:
- Structured log capture
- SQLite in-memory database sessions (one shared connection, visible from
  worker threads)
- An in-memory EventStore that counts calls and can be told to fail
"""

import json
import logging
from datetime import date
from io import StringIO

import pytest

from garage_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from garage_kernel.domain.clock import DeterministicClock
from garage_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from tests.factories import FakeEventStore, dt


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
    Capture garage_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "stock_reconciled" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("garage_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(dt(2024, 6, 1, 9, 0, 0))


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def session_factory():
    """Fresh in-memory SQLite schema per test."""
    init_engine_from_url("sqlite://")
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()


@pytest.fixture
def session(session_factory):
    with session_factory() as s:
        yield s


# =============================================================================
# In-memory EventStore
# =============================================================================


@pytest.fixture
def fake_store():
    return FakeEventStore()


@pytest.fixture
def may_period():
    """Scenario window: 2024-05-01 .. 2024-05-20."""
    return date(2024, 5, 1), date(2024, 5, 20)
