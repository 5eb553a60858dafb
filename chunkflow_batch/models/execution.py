"""
ORM model for durable execution records.

Contract:
    JobExecutionModel persists one row per run, with ``to_dto()`` /
    ``from_dto()`` round-trip methods to ExecutionRecord.

Architecture: chunkflow_batch/models. Imports from chunkflow_kernel.db.base only.

Invariants enforced:
    - ``parameters_key`` is indexed with ``job_name`` and ``status`` so the
      duplicate-run lookup is a single indexed query.  It is not UNIQUE:
      a FAILED or STOPPED run may be re-run with the same parameters.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chunkflow_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from chunkflow_batch.domain.types import ExecutionRecord


class JobExecutionModel(TrackedBase):
    """Persistent run record."""

    __tablename__ = "job_executions"

    __table_args__ = (
        Index(
            "ix_job_executions_identity", "job_name", "parameters_key", "status",
        ),
        Index("ix_job_executions_started_at", "started_at"),
    )

    job_name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    parameters: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    parameters_key: Mapped[str] = mapped_column(String(2000), nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    ended_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    read_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    filter_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    write_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    skip_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    commit_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_chunk_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_summary: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> ExecutionRecord:
        from chunkflow_batch.domain.types import ExecutionRecord, RunStatus

        return ExecutionRecord(
            run_id=self.id,
            job_name=self.job_name,
            status=RunStatus(self.status),
            parameters=self.parameters or {},
            parameters_key=self.parameters_key,
            started_at=self.started_at,
            ended_at=self.ended_at,
            read_count=self.read_count,
            filter_count=self.filter_count,
            write_count=self.write_count,
            skip_count=self.skip_count,
            commit_count=self.commit_count,
            failed_chunk_index=self.failed_chunk_index,
            error_summary=self.error_summary,
        )

    @classmethod
    def from_dto(cls, dto: ExecutionRecord) -> JobExecutionModel:
        model = cls(id=dto.run_id)
        model.apply(dto)
        return model

    def apply(self, dto: ExecutionRecord) -> None:
        """Copy every mutable field of ``dto`` onto this row."""
        self.job_name = dto.job_name
        self.status = dto.status.value
        self.parameters = dto.parameters or None
        self.parameters_key = dto.parameters_key
        self.started_at = dto.started_at
        self.ended_at = dto.ended_at
        self.read_count = dto.read_count
        self.filter_count = dto.filter_count
        self.write_count = dto.write_count
        self.skip_count = dto.skip_count
        self.commit_count = dto.commit_count
        self.failed_chunk_index = dto.failed_chunk_index
        self.error_summary = dto.error_summary
