"""
BatchScheduler -- In-process cron trigger for one JobDriver.

Contract:
    Polls on a configurable interval, evaluates ``should_fire()`` (pure)
    against the next cron fire time, and calls
    ``driver.run({"timestamp": <epoch millis>})`` when due.

Architecture: chunkflow_batch/services.  Uses chunkflow_kernel.domain.schedule
    for pure cron evaluation and the JobDriver for execution.

Invariants enforced:
    - All timestamps from injected Clock.
    - Fire times that passed while a run was in flight are coalesced into
      one fire; the next fire time is always computed after ``now``.
    - A trigger that finds a run in flight is skipped, never queued.
    - Graceful shutdown: ``stop()`` asks the in-flight run to stop after
      its current chunk and waits for the thread.
    - A stopped scheduler never fires, and a stop that lands while a run
      is starting still reaches that run.
"""

from __future__ import annotations

import threading
from datetime import datetime

from chunkflow_kernel.domain.clock import Clock, SystemClock
from chunkflow_kernel.domain.schedule import next_fire_time, parse_cron, should_fire
from chunkflow_kernel.exceptions import RunAlreadyActiveError
from chunkflow_kernel.logging_config import get_logger

from chunkflow_batch.services.job_driver import JobDriver

logger = get_logger("batch.scheduler")

TIMESTAMP_PARAMETER = "timestamp"


class BatchScheduler:
    """In-process polling trigger.

    Contract:
        - ``tick()`` fires the driver once if the cron fire time has come.
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - NOT a distributed scheduler (no leader election).
        - Does NOT handle timezone conversions (cron fields are matched
          against the clock's own time).
    """

    def __init__(
        self,
        driver: JobDriver,
        cron_expression: str,
        clock: Clock | None = None,
        poll_interval_seconds: float = 1.0,
    ) -> None:
        self._driver = driver
        self._cron_expression = cron_expression
        self._spec = parse_cron(cron_expression)
        self._clock = clock or SystemClock()
        self._poll_interval = poll_interval_seconds
        self._next_fire_at: datetime = next_fire_time(self._spec, self._clock.now())
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def next_fire_at(self) -> datetime:
        return self._next_fire_at

    def tick(self) -> bool:
        """Fire the driver if due (public for testing).

        Returns True if a fire was attempted, whatever its outcome.  A
        stopped scheduler never fires.
        """
        if self._stop_event.is_set():
            return False
        now = self._clock.now()
        if not should_fire(self._next_fire_at, now):
            return False

        self._next_fire_at = next_fire_time(self._spec, now)
        parameters = {TIMESTAMP_PARAMETER: self._clock.epoch_millis()}
        try:
            record = self._driver.run(parameters)
        except RunAlreadyActiveError:
            logger.warning(
                "trigger_skipped_run_active",
                extra={"job_name": self._driver.job_name},
            )
        except Exception:
            logger.exception(
                "scheduled_run_failed",
                extra={"job_name": self._driver.job_name},
            )
        else:
            logger.info(
                "scheduled_run_finished",
                extra={
                    "job_name": self._driver.job_name,
                    "run_id": str(record.run_id),
                    "status": record.status.value,
                    "next_fire_at": self._next_fire_at,
                },
            )
        return True

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="chunkflow-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "scheduler_started",
            extra={
                "cron": self._cron_expression,
                "poll_interval": self._poll_interval,
                "next_fire_at": self._next_fire_at,
            },
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop, stop the in-flight run, and wait for the thread.

        Args:
            timeout: Max seconds to wait for the thread to finish.
        """
        self._stop_event.set()
        self._driver.request_stop()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    def wait(self) -> None:
        """Block until ``stop()`` is called from another thread."""
        while not self._stop_event.wait(timeout=self._poll_interval):
            pass

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Background polling loop. Exits when stop_event is set."""
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            self._stop_event.wait(timeout=self._poll_interval)
