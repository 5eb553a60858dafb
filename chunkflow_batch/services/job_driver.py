"""
JobDriver -- owns one run end-to-end.

Contract:
    ``run(parameters)`` executes one run of a ChunkStep and returns its
    final ExecutionRecord.

    1. Acquire the run lock (overlap -> RunAlreadyActiveError).
    2. Reject parameters matching a COMPLETED run (DuplicateRunError),
       before any side effect.
    3. Persist a STARTED record; build a fresh ExecutionContext.
    4. ``before_run`` hooks; build reader/writer from the context; resolve
       the output resource.
    5. Drive the ChunkRunner to completion, stop, or failure.
    6. ``after_run`` hooks (an override replaces the status).
    7. Persist the final record.

Invariants enforced:
    - One active run per driver.
    - Every failure after step 2 ends in a persisted FAILED record and is
      re-raised with ``run_id`` (and ``chunk_index`` when a chunk failed),
      unless an ``after_run`` hook overrides the status away from FAILED.
    - An ``after_run`` hook that raises fails the run.  The chunk error, if
      there was one, is the one re-raised; the hook error is logged.
    - The ExecutionContext is never shared between runs.
    - All timestamps from the injected Clock.

Non-goals:
    - Does NOT schedule runs -- that is the scheduler's job.
    - Does NOT restart from the middle of a failed run.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Sequence
from uuid import uuid4

from chunkflow_kernel.domain.clock import Clock, SystemClock
from chunkflow_kernel.exceptions import (
    ChunkflowError,
    DuplicateRunError,
    RunAlreadyActiveError,
)
from chunkflow_kernel.logging_config import LogContext, get_logger

from chunkflow_batch.domain.context import (
    JOB_NAME_KEY,
    RUN_ID_KEY,
    ExecutionContext,
)
from chunkflow_batch.domain.types import (
    ExecutionRecord,
    RunStatus,
    StepResult,
    parameters_key,
)
from chunkflow_batch.services.chunk_runner import ChunkRunner
from chunkflow_batch.services.listeners import RunListener
from chunkflow_batch.services.run_store import ExecutionStore, InMemoryExecutionStore

if TYPE_CHECKING:
    from chunkflow_batch.jobs.base import ChunkStep, JobPlan

logger = get_logger("batch.job_driver")


class JobDriver:
    """Run a ChunkStep once per call, recording each run in a store."""

    def __init__(
        self,
        job_name: str,
        step: ChunkStep,
        store: ExecutionStore | None = None,
        listeners: Sequence[RunListener] = (),
        clock: Clock | None = None,
        stop_event: threading.Event | None = None,
    ) -> None:
        self._job_name = job_name
        self._step = step
        self._store = store if store is not None else InMemoryExecutionStore()
        self._listeners = tuple(listeners)
        self._clock = clock or SystemClock()
        self._stop_event = stop_event or threading.Event()
        self._run_lock = threading.Lock()

    @classmethod
    def from_plan(
        cls,
        plan: JobPlan,
        store: ExecutionStore | None = None,
        clock: Clock | None = None,
        stop_event: threading.Event | None = None,
    ) -> JobDriver:
        return cls(
            job_name=plan.job_name,
            step=plan.step,
            store=store,
            listeners=plan.listeners,
            clock=clock,
            stop_event=stop_event,
        )

    @property
    def job_name(self) -> str:
        return self._job_name

    @property
    def store(self) -> ExecutionStore:
        return self._store

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def request_stop(self) -> None:
        """Ask the in-flight run to stop after its current chunk.

        A request made while no chunk loop is running is kept, so the
        next run stops before its first chunk.
        """
        self._stop_event.set()

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run(self, parameters: dict[str, Any] | None = None) -> ExecutionRecord:
        """Execute one run.

        Raises:
            RunAlreadyActiveError: If another run of this driver is in flight.
            DuplicateRunError: If ``parameters`` match a COMPLETED run.
            ChunkflowError: Any fatal run error (after recording FAILED).
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("run_rejected_active", extra={"job_name": self._job_name})
            raise RunAlreadyActiveError(self._job_name)
        try:
            return self._run_locked(dict(parameters or {}))
        finally:
            self._run_lock.release()

    def _run_locked(self, parameters: dict[str, Any]) -> ExecutionRecord:
        key = parameters_key(parameters)
        existing = self._store.find_completed(self._job_name, key)
        if existing is not None:
            logger.warning(
                "run_rejected_duplicate",
                extra={
                    "job_name": self._job_name,
                    "parameters_key": key,
                    "existing_run_id": str(existing.run_id),
                },
            )
            raise DuplicateRunError(self._job_name, key, str(existing.run_id))

        record = ExecutionRecord(
            run_id=uuid4(),
            job_name=self._job_name,
            status=RunStatus.STARTED,
            parameters=parameters,
            parameters_key=key,
            started_at=self._clock.now(),
        )
        self._store.create(record)

        # A stop request is consumed by the run it reaches, never discarded
        # before that run starts.
        try:
            with LogContext.bind(run_id=str(record.run_id), job_name=self._job_name):
                logger.info("run_started", extra={"parameters": parameters})
                return self._execute(record)
        finally:
            self._stop_event.clear()

    def _execute(self, record: ExecutionRecord) -> ExecutionRecord:
        context = ExecutionContext(dict(record.parameters))
        context.put(RUN_ID_KEY, str(record.run_id))
        context.put(JOB_NAME_KEY, self._job_name)

        runner: ChunkRunner | None = None
        error: BaseException | None = None
        status = RunStatus.FAILED
        try:
            for listener in self._listeners:
                listener.before_run(context)
            runner = self._build_runner(context)
            result = runner.run()
            status = RunStatus.STOPPED if result.stopped else RunStatus.COMPLETED
        except Exception as exc:
            error = exc

        result = runner.result if runner is not None else StepResult()
        try:
            status = self._after_run(context, status)
        except Exception as hook_exc:
            status = RunStatus.FAILED
            if error is None:
                error = hook_exc
            else:
                logger.error(
                    "after_run_hook_failed",
                    extra={"hook_error": f"{type(hook_exc).__name__}: {hook_exc}"},
                    exc_info=hook_exc,
                )

        failed_chunk_index = None
        if isinstance(error, ChunkflowError):
            error.run_id = str(record.run_id)
            failed_chunk_index = error.chunk_index

        final = replace(
            record,
            status=status,
            ended_at=self._clock.now(),
            read_count=result.read_count,
            filter_count=result.filter_count,
            write_count=result.write_count,
            skip_count=result.skip_count,
            commit_count=result.commit_count,
            failed_chunk_index=failed_chunk_index,
            error_summary=(
                f"{type(error).__name__}: {error}" if error is not None else None
            ),
        )
        self._store.update(final)
        self._log_outcome(final, error)

        if error is not None and final.status == RunStatus.FAILED:
            raise error
        return final

    def _build_runner(self, context: ExecutionContext) -> ChunkRunner:
        step = self._step
        resource = step.resource_resolver(context)
        return ChunkRunner(
            reader=step.reader_factory(context),
            processor=step.processor,
            writer=step.writer_factory(context),
            resource=resource,
            chunk_size=step.chunk_size,
            processing_error_policy=step.processing_error_policy,
            max_workers=step.max_workers,
            stop_event=self._stop_event,
        )

    def _after_run(self, context: ExecutionContext, status: RunStatus) -> RunStatus:
        for listener in self._listeners:
            override = listener.after_run(context, status)
            if override is not None:
                logger.info(
                    "run_status_overridden",
                    extra={"from_status": status.value, "to_status": override.value},
                )
                status = override
        return status

    def _log_outcome(
        self, record: ExecutionRecord, error: BaseException | None,
    ) -> None:
        extra = {
            "status": record.status.value,
            "read_count": record.read_count,
            "write_count": record.write_count,
            "filter_count": record.filter_count,
            "skip_count": record.skip_count,
            "commit_count": record.commit_count,
        }
        if record.status == RunStatus.FAILED:
            logger.error(
                "run_failed",
                extra={**extra, "failed_chunk_index": record.failed_chunk_index},
                exc_info=error,
            )
        elif record.status == RunStatus.STOPPED:
            logger.warning("run_stopped", extra=extra)
        else:
            logger.info("run_completed", extra=extra)
