"""
ChunkStep, JobDefinition protocol, and JobRegistry.

Contract:
    ``ChunkStep`` bundles the per-run factories and settings the job driver
    needs to build a ChunkRunner.  Reader and writer are built per run from
    the run's ExecutionContext; the processor is shared across runs.
    ``JobDefinition`` turns a JobConfig into a ChunkStep plus its listeners.
    ``JobRegistry`` stores job definitions keyed by ``name``.

Architecture:
    chunkflow_batch/jobs.  Imports chunkflow_config only for type checking.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Protocol, runtime_checkable

from chunkflow_kernel.domain.clock import Clock
from chunkflow_kernel.exceptions import JobNotRegisteredError

from chunkflow_batch.adapters.base import RecordReader, RecordWriter
from chunkflow_batch.adapters.writer import resolve_output_resource
from chunkflow_batch.domain.context import ExecutionContext
from chunkflow_batch.domain.types import ErrorPolicy
from chunkflow_batch.processors.base import RecordProcessor
from chunkflow_batch.services.listeners import RunListener

if TYPE_CHECKING:
    from chunkflow_config.schema import JobConfig


# =============================================================================
# ChunkStep
# =============================================================================


@dataclass(frozen=True)
class ChunkStep:
    """Everything needed to run one chunk-oriented step."""

    reader_factory: Callable[[ExecutionContext], RecordReader]
    processor: RecordProcessor
    writer_factory: Callable[[ExecutionContext], RecordWriter]
    resource_resolver: Callable[[ExecutionContext], Path] = resolve_output_resource
    chunk_size: int = 3
    processing_error_policy: ErrorPolicy = ErrorPolicy.ABORT
    max_workers: int = 1


@dataclass(frozen=True)
class JobPlan:
    """A built job: the step and the listeners wrapped around each run."""

    job_name: str
    step: ChunkStep
    listeners: tuple[RunListener, ...] = ()


# =============================================================================
# JobDefinition Protocol
# =============================================================================


@runtime_checkable
class JobDefinition(Protocol):
    """Builds a JobPlan from configuration.

    Contract:
        - ``name``: unique key registered in JobRegistry.
        - ``description``: human-readable label for logs / CLI.
        - ``build()``: pure wiring; opens no files.
    """

    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    def build(self, config: JobConfig, clock: Clock) -> JobPlan:
        ...


# =============================================================================
# JobRegistry
# =============================================================================


class JobRegistry:
    """Registry mapping job names to JobDefinition implementations.

    Contract:
        - ``register()`` adds a definition; raises ValueError on duplicate.
        - ``get()`` retrieves by name; raises JobNotRegisteredError if missing.
        - ``list_jobs()`` returns all registered names.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, JobDefinition] = {}

    def register(self, job: JobDefinition) -> None:
        """Register a job definition.

        Raises:
            ValueError: If a job with the same name is already registered.
        """
        if job.name in self._jobs:
            raise ValueError(f"Job '{job.name}' is already registered")
        self._jobs[job.name] = job

    def get(self, name: str) -> JobDefinition:
        """Retrieve a registered job by name.

        Raises:
            JobNotRegisteredError: If no job is registered under ``name``.
        """
        try:
            return self._jobs[name]
        except KeyError:
            raise JobNotRegisteredError(name, self.list_jobs()) from None

    def list_jobs(self) -> tuple[str, ...]:
        """Return all registered job names, sorted."""
        return tuple(sorted(self._jobs.keys()))

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, name: str) -> bool:
        return name in self._jobs
