"""
RecordProcessor protocol and composition helpers.

Contract:
    ``process(record)`` maps one InputRecord to an output record, or returns
    None to filter the record out.  Processors are pure: no I/O and no
    shared mutable state, so one instance is reused across chunks and may
    be called from several worker threads within a chunk.

    A processor that cannot handle a record raises ``ProcessingError``
    carrying that record.  The chunk runner decides (by policy) whether the
    record is skipped or the run aborted.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

from chunkflow_batch.domain.types import InputRecord


@runtime_checkable
class RecordProcessor(Protocol):
    """Maps one input record to an output record, or None if filtered."""

    def process(self, record: InputRecord) -> Any | None:
        ...


class CompositeProcessor:
    """Chain processors; stops at the first one that filters the record.

    Each processor receives the previous processor's output.
    """

    def __init__(self, processors: Sequence[RecordProcessor]) -> None:
        if not processors:
            raise ValueError("CompositeProcessor requires at least one processor")
        self._processors = tuple(processors)

    def process(self, record: InputRecord) -> Any | None:
        current: Any = record
        for processor in self._processors:
            current = processor.process(current)
            if current is None:
                return None
        return current
