"""
Reader / writer protocols for the chunk runner.

Contract:
    RecordReader.read() returns one InputRecord per call, or None at end of
    input.  RecordWriter.write_all() flushes one chunk as a single unit.

Architecture: chunkflow_batch/adapters. File I/O only, no DB imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol, Sequence, runtime_checkable

from chunkflow_batch.domain.types import InputRecord


@runtime_checkable
class RecordReader(Protocol):
    """Pull-based record source, opened once per run."""

    def open(self) -> None:
        ...

    def read(self) -> InputRecord | None:
        """Return the next record, or None when input is exhausted."""
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class RecordWriter(Protocol):
    """Chunk sink, opened once per run on a resource resolved at run start."""

    def open(self, resource: Path) -> None:
        ...

    def write_all(self, records: Sequence[Any]) -> None:
        """Write a whole chunk. Either every record is written or WriteError."""
        ...

    def close(self) -> None:
        ...
