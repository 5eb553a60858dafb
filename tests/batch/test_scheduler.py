"""
Tests for chunkflow_batch.services.scheduler -- BatchScheduler.

Validates tick() evaluation against the injected clock, the timestamp
parameter, coalescing of missed fire times, skip-on-overlap, failure
isolation, and the start/stop lifecycle.
"""

import threading
from datetime import timedelta
from typing import Any
from uuid import uuid4

import pytest

from chunkflow_kernel.exceptions import (
    InvalidCronExpressionError,
    RunAlreadyActiveError,
    WriteError,
)

from chunkflow_batch.adapters.reader import DelimitedRecordReader
from chunkflow_batch.adapters.writer import DelimitedRecordWriter
from chunkflow_batch.domain.types import ExecutionRecord, RunStatus
from chunkflow_batch.jobs.base import ChunkStep
from chunkflow_batch.jobs.person_export import OUTPUT_FIELDS, PERSON_FIELDS
from chunkflow_batch.processors.person import TitleFilterProcessor
from chunkflow_batch.services.job_driver import JobDriver
from chunkflow_batch.services.listeners import OutputPathListener
from chunkflow_batch.services.scheduler import TIMESTAMP_PARAMETER, BatchScheduler

EVERY_MINUTE = "0 * * * * *"


# =============================================================================
# Test driver
# =============================================================================


class RecordingDriver:
    """Stands in for JobDriver; records every run call."""

    job_name = "recording"

    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[dict[str, Any]] = []
        self.stop_requests = 0
        self.fired = threading.Event()
        self._error = error

    def run(self, parameters: dict[str, Any]) -> ExecutionRecord:
        self.calls.append(parameters)
        self.fired.set()
        if self._error is not None:
            raise self._error
        return ExecutionRecord(
            run_id=uuid4(), job_name=self.job_name, status=RunStatus.COMPLETED,
            parameters=parameters,
        )

    def request_stop(self) -> None:
        self.stop_requests += 1


# =============================================================================
# tick()
# =============================================================================


class TestTick:
    def test_first_fire_is_after_construction(self, deterministic_clock):
        scheduler = BatchScheduler(RecordingDriver(), EVERY_MINUTE, clock=deterministic_clock)
        assert scheduler.next_fire_at == deterministic_clock.now() + timedelta(minutes=1)

    def test_not_due_does_nothing(self, deterministic_clock):
        driver = RecordingDriver()
        scheduler = BatchScheduler(driver, EVERY_MINUTE, clock=deterministic_clock)

        deterministic_clock.advance(59)
        assert scheduler.tick() is False
        assert driver.calls == []

    def test_due_fires_with_timestamp(self, deterministic_clock):
        driver = RecordingDriver()
        scheduler = BatchScheduler(driver, EVERY_MINUTE, clock=deterministic_clock)

        deterministic_clock.advance(60)
        assert scheduler.tick() is True
        assert driver.calls == [{TIMESTAMP_PARAMETER: 1704110460000}]
        assert scheduler.next_fire_at == deterministic_clock.now() + timedelta(minutes=1)

    def test_fires_once_per_fire_time(self, deterministic_clock):
        driver = RecordingDriver()
        scheduler = BatchScheduler(driver, EVERY_MINUTE, clock=deterministic_clock)

        deterministic_clock.advance(60)
        scheduler.tick()
        assert scheduler.tick() is False
        assert len(driver.calls) == 1

    def test_missed_fire_times_coalesce(self, deterministic_clock):
        driver = RecordingDriver()
        scheduler = BatchScheduler(driver, EVERY_MINUTE, clock=deterministic_clock)
        start = deterministic_clock.now()

        deterministic_clock.advance(5 * 60 + 10)
        assert scheduler.tick() is True
        assert scheduler.tick() is False
        assert len(driver.calls) == 1
        assert scheduler.next_fire_at == start + timedelta(minutes=6)

    def test_run_failure_is_logged_not_raised(self, deterministic_clock, captured_logs):
        driver = RecordingDriver(error=WriteError("disk full"))
        scheduler = BatchScheduler(driver, EVERY_MINUTE, clock=deterministic_clock)

        deterministic_clock.advance(60)
        assert scheduler.tick() is True

        failed = [r for r in captured_logs() if r["message"] == "scheduled_run_failed"]
        assert failed[0]["exc_code"] == "WRITE_ERROR"

        deterministic_clock.advance(60)
        assert scheduler.tick() is True
        assert len(driver.calls) == 2

    def test_overlapping_trigger_skipped(self, deterministic_clock, captured_logs):
        driver = RecordingDriver(error=RunAlreadyActiveError("recording"))
        scheduler = BatchScheduler(driver, EVERY_MINUTE, clock=deterministic_clock)

        deterministic_clock.advance(60)
        assert scheduler.tick() is True

        messages = [r["message"] for r in captured_logs()]
        assert "trigger_skipped_run_active" in messages
        assert "scheduled_run_failed" not in messages

    def test_invalid_cron_rejected(self, deterministic_clock):
        with pytest.raises(InvalidCronExpressionError):
            BatchScheduler(RecordingDriver(), "not a cron", clock=deterministic_clock)


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:
    def test_start_fires_in_background_and_stop_joins(self, deterministic_clock):
        driver = RecordingDriver()
        scheduler = BatchScheduler(
            driver, EVERY_MINUTE, clock=deterministic_clock, poll_interval_seconds=0.01,
        )
        deterministic_clock.advance(60)

        scheduler.start()
        try:
            assert scheduler.is_running
            assert driver.fired.wait(timeout=5)
        finally:
            scheduler.stop(timeout=5)

        assert not scheduler.is_running
        assert driver.stop_requests == 1
        assert len(driver.calls) == 1

    def test_start_twice_keeps_one_thread(self, deterministic_clock):
        scheduler = BatchScheduler(
            RecordingDriver(), EVERY_MINUTE, clock=deterministic_clock,
            poll_interval_seconds=0.01,
        )
        scheduler.start()
        first_thread = scheduler._thread
        scheduler.start()
        try:
            assert scheduler._thread is first_thread
        finally:
            scheduler.stop(timeout=5)

    def test_wait_returns_after_stop(self, deterministic_clock):
        scheduler = BatchScheduler(
            RecordingDriver(), EVERY_MINUTE, clock=deterministic_clock,
            poll_interval_seconds=0.01,
        )
        scheduler.start()
        timer = threading.Timer(0.05, scheduler.stop)
        timer.start()
        scheduler.wait()
        timer.join(timeout=5)
        assert not scheduler.is_running

    def test_stopped_scheduler_does_not_fire(self, deterministic_clock):
        driver = RecordingDriver()
        scheduler = BatchScheduler(driver, EVERY_MINUTE, clock=deterministic_clock)
        scheduler.stop(timeout=5)

        deterministic_clock.advance(60)
        assert scheduler.tick() is False
        assert driver.calls == []
        assert driver.stop_requests == 1


# =============================================================================
# With a real JobDriver
# =============================================================================


class TestWithJobDriver:
    def test_scheduled_run_writes_timestamped_output(
        self, tmp_path, write_people, person_row, deterministic_clock,
    ):
        source = write_people([
            person_row(1, "Ann", "Lee", "Manager"),
            person_row(2, "John", "Smith", "Professor"),
        ])
        step = ChunkStep(
            reader_factory=lambda ctx: DelimitedRecordReader(source, PERSON_FIELDS),
            processor=TitleFilterProcessor(),
            writer_factory=lambda ctx: DelimitedRecordWriter(OUTPUT_FIELDS),
        )
        driver = JobDriver(
            job_name="person_export",
            step=step,
            listeners=[OutputPathListener(tmp_path / "persons", clock=deterministic_clock)],
            clock=deterministic_clock,
        )
        scheduler = BatchScheduler(driver, EVERY_MINUTE, clock=deterministic_clock)

        deterministic_clock.advance(60)
        scheduler.tick()
        deterministic_clock.advance(60)
        scheduler.tick()

        runs = driver.store.list_runs("person_export")
        assert [r.status for r in runs] == [RunStatus.COMPLETED, RunStatus.COMPLETED]
        assert runs[0].parameters == {"timestamp": 1704110460000}
        output = tmp_path / "persons_1704110460000.csv"
        assert output.read_text(encoding="utf-8") == "Ann,Lee\n"
        assert (tmp_path / "persons_1704110520000.csv").exists()

    def test_stop_while_run_is_starting_reaches_the_run(
        self, tmp_path, write_people, person_row, deterministic_clock,
    ):
        source = write_people([person_row(1, "Ann", "Lee", "Manager")])
        step = ChunkStep(
            reader_factory=lambda ctx: DelimitedRecordReader(source, PERSON_FIELDS),
            processor=TitleFilterProcessor(),
            writer_factory=lambda ctx: DelimitedRecordWriter(OUTPUT_FIELDS),
        )
        holder = {}

        class _StopOnEntry(JobDriver):
            def run(self, parameters=None):
                holder["scheduler"].stop(timeout=0)
                return super().run(parameters)

        driver = _StopOnEntry(
            job_name="person_export",
            step=step,
            listeners=[OutputPathListener(tmp_path / "persons", clock=deterministic_clock)],
            clock=deterministic_clock,
        )
        scheduler = BatchScheduler(driver, EVERY_MINUTE, clock=deterministic_clock)
        holder["scheduler"] = scheduler

        deterministic_clock.advance(60)
        assert scheduler.tick() is True

        [record] = driver.store.list_runs("person_export")
        assert record.status == RunStatus.STOPPED
        assert record.commit_count == 0
