"""
Execution stores -- where the job driver records runs.

Contract:
    ``ExecutionStore`` is the seam between the job driver and persistence.
    ``InMemoryExecutionStore`` is the default; ``SqlExecutionStore`` keeps
    records in the ``job_executions`` table so the duplicate-run guard
    survives process restarts.  Swapping stores changes nothing in the
    chunk runner, processors, or writers.
"""

from __future__ import annotations

import threading
from typing import Callable, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from chunkflow_kernel.db.engine import session_scope
from chunkflow_kernel.exceptions import ExecutionNotFoundError

from chunkflow_batch.domain.types import ExecutionRecord, RunStatus
from chunkflow_batch.models.execution import JobExecutionModel


@runtime_checkable
class ExecutionStore(Protocol):
    def create(self, record: ExecutionRecord) -> None:
        ...

    def update(self, record: ExecutionRecord) -> None:
        ...

    def get(self, run_id: UUID) -> ExecutionRecord:
        ...

    def find_completed(
        self, job_name: str, parameters_key: str,
    ) -> ExecutionRecord | None:
        ...

    def list_runs(self, job_name: str) -> tuple[ExecutionRecord, ...]:
        ...

    def last_run(self, job_name: str) -> ExecutionRecord | None:
        ...


# =============================================================================
# In-memory
# =============================================================================


class InMemoryExecutionStore:
    """Thread-safe dict-backed store. Records vanish with the process."""

    def __init__(self) -> None:
        self._records: dict[UUID, ExecutionRecord] = {}
        self._lock = threading.Lock()

    def create(self, record: ExecutionRecord) -> None:
        with self._lock:
            if record.run_id in self._records:
                raise ValueError(f"Execution {record.run_id} already exists")
            self._records[record.run_id] = record

    def update(self, record: ExecutionRecord) -> None:
        with self._lock:
            if record.run_id not in self._records:
                raise ExecutionNotFoundError(str(record.run_id))
            self._records[record.run_id] = record

    def get(self, run_id: UUID) -> ExecutionRecord:
        with self._lock:
            try:
                return self._records[run_id]
            except KeyError:
                raise ExecutionNotFoundError(str(run_id)) from None

    def find_completed(
        self, job_name: str, parameters_key: str,
    ) -> ExecutionRecord | None:
        with self._lock:
            for record in self._records.values():
                if (
                    record.job_name == job_name
                    and record.parameters_key == parameters_key
                    and record.status == RunStatus.COMPLETED
                ):
                    return record
        return None

    def list_runs(self, job_name: str) -> tuple[ExecutionRecord, ...]:
        """All runs of a job, in insertion (start) order."""
        with self._lock:
            return tuple(
                r for r in self._records.values() if r.job_name == job_name
            )

    def last_run(self, job_name: str) -> ExecutionRecord | None:
        runs = self.list_runs(job_name)
        return runs[-1] if runs else None


# =============================================================================
# SQLAlchemy
# =============================================================================


class SqlExecutionStore:
    """Store backed by JobExecutionModel.

    Each operation runs in its own short transaction from
    ``session_factory``; the store never holds a session between calls.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def create(self, record: ExecutionRecord) -> None:
        with session_scope(self._session_factory) as session:
            session.add(JobExecutionModel.from_dto(record))

    def update(self, record: ExecutionRecord) -> None:
        with session_scope(self._session_factory) as session:
            model = session.get(JobExecutionModel, record.run_id)
            if model is None:
                raise ExecutionNotFoundError(str(record.run_id))
            model.apply(record)

    def get(self, run_id: UUID) -> ExecutionRecord:
        with session_scope(self._session_factory) as session:
            model = session.get(JobExecutionModel, run_id)
            if model is None:
                raise ExecutionNotFoundError(str(run_id))
            return model.to_dto()

    def find_completed(
        self, job_name: str, parameters_key: str,
    ) -> ExecutionRecord | None:
        with session_scope(self._session_factory) as session:
            model = session.execute(
                select(JobExecutionModel)
                .where(
                    JobExecutionModel.job_name == job_name,
                    JobExecutionModel.parameters_key == parameters_key,
                    JobExecutionModel.status == RunStatus.COMPLETED.value,
                )
                .limit(1)
            ).scalar_one_or_none()
            return model.to_dto() if model is not None else None

    def list_runs(self, job_name: str) -> tuple[ExecutionRecord, ...]:
        with session_scope(self._session_factory) as session:
            models = session.execute(
                select(JobExecutionModel)
                .where(JobExecutionModel.job_name == job_name)
                .order_by(JobExecutionModel.started_at, JobExecutionModel.created_at)
            ).scalars().all()
            return tuple(m.to_dto() for m in models)

    def last_run(self, job_name: str) -> ExecutionRecord | None:
        runs = self.list_runs(job_name)
        return runs[-1] if runs else None
