"""
Pytest fixtures for the chunkflow test suite.

Provides:
- Structured logging configured once per session, plus log capture
- Deterministic clock
- In-memory SQLite engine / session factory with the execution tables
- People CSV files written under tmp_path

No external services are required.
"""

import json
import logging
from io import StringIO
from pathlib import Path
from typing import Callable, Sequence

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from chunkflow_kernel.db.engine import create_tables, reset_engine
from chunkflow_kernel.domain.clock import DeterministicClock
from chunkflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

import chunkflow_batch.models  # noqa: F401  registers job_executions

PEOPLE_HEADER = "person_ID,name,first,last,middle,email,phone,fax,title"


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
    Capture chunkflow logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "run_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("chunkflow")
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
# Clock fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_global_engine():
    """Dispose any module-level engine created by the code under test."""
    yield
    reset_engine()


@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine):
    return sessionmaker(bind=sqlite_engine, expire_on_commit=False)


# =============================================================================
# Input file fixtures
# =============================================================================


def _person_row(
    person_id: int,
    first: str,
    last: str,
    title: str,
    email: str = "",
) -> str:
    """One people CSV line in the nine-column layout."""
    return f"{person_id},{first} {last},{first},{last},,{email},,,{title}"


@pytest.fixture
def person_row() -> Callable[..., str]:
    return _person_row


@pytest.fixture
def write_people(tmp_path: Path) -> Callable[..., Path]:
    """Write a people CSV (header + rows) and return its path."""

    def _write(rows: Sequence[str], name: str = "people.csv") -> Path:
        path = tmp_path / name
        path.write_text(
            "\n".join([PEOPLE_HEADER, *rows]) + "\n", encoding="utf-8",
        )
        return path

    return _write
