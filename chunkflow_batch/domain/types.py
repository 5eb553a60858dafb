"""
chunkflow_batch.domain.types -- Pure frozen dataclasses for the batch engine.

ZERO I/O.

Frozen dataclasses with enum status fields and tuples for immutable
collections.  Records flowing through a chunk are immutable once parsed;
execution records are replaced (``dataclasses.replace``), never mutated.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterator
from uuid import UUID


# =============================================================================
# Status enums
# =============================================================================


class RunStatus(str, Enum):
    """Run-level lifecycle status."""

    STARTED = "started"  # Execution in progress
    COMPLETED = "completed"  # Input exhausted, every chunk committed
    FAILED = "failed"  # A fatal error aborted the run
    STOPPED = "stopped"  # Stop requested; halted between chunks


class ErrorPolicy(str, Enum):
    """What the engine does with a bad record."""

    ABORT = "abort"  # Fail the run
    SKIP = "skip"  # Log, count, continue


# =============================================================================
# Record DTOs
# =============================================================================


@dataclass(frozen=True)
class InputRecord:
    """One parsed input line: ordered field names and string values.

    ``line_number`` is the 1-based physical line in the source file.
    """

    names: tuple[str, ...]
    values: tuple[str, ...]
    line_number: int = 0

    def __post_init__(self) -> None:
        if len(self.names) != len(self.values):
            raise ValueError(
                f"InputRecord has {len(self.names)} names but "
                f"{len(self.values)} values"
            )

    @classmethod
    def from_mapping(cls, data: dict[str, str], line_number: int = 0) -> InputRecord:
        return cls(
            names=tuple(data.keys()),
            values=tuple(data.values()),
            line_number=line_number,
        )

    def __getitem__(self, name: str) -> str:
        try:
            return self.values[self.names.index(name)]
        except ValueError:
            raise KeyError(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def get(self, name: str, default: str | None = None) -> str | None:
        if name in self.names:
            return self[name]
        return default

    def as_dict(self) -> dict[str, str]:
        return dict(zip(self.names, self.values))


# =============================================================================
# Run parameters
# =============================================================================


def parameters_key(parameters: dict[str, Any]) -> str:
    """Canonical identity of a parameter set (sorted-key JSON).

    Two runs of the same job with equal keys are the same run instance.
    """
    return json.dumps(parameters, sort_keys=True, separators=(",", ":"), default=str)


# =============================================================================
# Step / run results
# =============================================================================


@dataclass(frozen=True)
class StepResult:
    """Counters produced by one chunk-runner pass.

    ``commit_count`` counts chunks committed, including chunks whose every
    record was filtered (those never reach the writer).
    """

    read_count: int = 0
    filter_count: int = 0
    write_count: int = 0
    skip_count: int = 0
    commit_count: int = 0
    stopped: bool = False


@dataclass(frozen=True)
class ExecutionRecord:
    """Immutable snapshot of one run.

    ``parameters_key`` is the canonical form of ``parameters`` used to
    reject re-running a COMPLETED run instance.
    """

    run_id: UUID
    job_name: str
    status: RunStatus
    parameters: dict[str, Any] = field(default_factory=dict)
    parameters_key: str = ""
    started_at: datetime | None = None
    ended_at: datetime | None = None
    read_count: int = 0
    filter_count: int = 0
    write_count: int = 0
    skip_count: int = 0
    commit_count: int = 0
    failed_chunk_index: int | None = None
    error_summary: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status != RunStatus.STARTED
