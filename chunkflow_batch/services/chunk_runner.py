"""
ChunkRunner -- chunk-oriented read/process/write loop.

Contract:
    Drives reader -> processor -> writer in chunks of ``chunk_size`` input
    records.  Each chunk's surviving records are handed to the writer in a
    single ``write_all`` call; that call is the chunk's commit point.

Algorithm (per run):
    1. Open reader, open writer on the run's resource.
    2. Read up to ``chunk_size`` records (fewer at end of input).
    3. Process each record; keep non-None results in input order.
    4. If anything survived, ``write_all`` once for the whole chunk.
    5. Count the commit; repeat until input is exhausted.
    6. Close writer and reader on every exit path.

Invariants enforced:
    - Chunk size counts records read, not records kept.
    - A chunk filtered down to nothing commits without calling the writer.
    - Output order is input order, also when records are processed in
      parallel (``max_workers > 1``).
    - Any failure annotates the exception with ``chunk_index`` (1-based)
      and propagates; no later chunk is read.  Earlier commits stand.
    - A stop request is honoured only between chunks.

Non-goals:
    - Does NOT persist execution state -- that is the job driver's job.
    - Does NOT retry failed chunks.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import nullcontext
from dataclasses import replace
from pathlib import Path
from typing import Any

from chunkflow_kernel.exceptions import (
    ChunkflowError,
    ConfigurationError,
    ProcessingError,
    WriteError,
)
from chunkflow_kernel.logging_config import get_logger

from chunkflow_batch.adapters.base import RecordReader, RecordWriter
from chunkflow_batch.domain.types import ErrorPolicy, InputRecord, StepResult
from chunkflow_batch.processors.base import RecordProcessor

logger = get_logger("batch.chunk_runner")


class ChunkRunner:
    """Run one reader/processor/writer pass in committed chunks.

    One instance serves exactly one run: the reader and writer are owned
    exclusively by it from ``run()`` until it returns or raises.
    """

    def __init__(
        self,
        reader: RecordReader,
        processor: RecordProcessor,
        writer: RecordWriter,
        resource: Path,
        chunk_size: int = 3,
        processing_error_policy: ErrorPolicy = ErrorPolicy.ABORT,
        max_workers: int = 1,
        stop_event: threading.Event | None = None,
    ) -> None:
        if chunk_size < 1:
            raise ConfigurationError(
                f"chunk_size must be >= 1, got {chunk_size}", key="chunk.size",
            )
        if max_workers < 1:
            raise ConfigurationError(
                f"max_workers must be >= 1, got {max_workers}",
                key="processing.max-workers",
            )
        self._reader = reader
        self._processor = processor
        self._writer = writer
        self._resource = resource
        self._chunk_size = chunk_size
        self._policy = processing_error_policy
        self._max_workers = max_workers
        self._stop_event = stop_event
        self._result = StepResult()

    @property
    def result(self) -> StepResult:
        """Counters so far; complete once ``run()`` has returned."""
        return replace(
            self._result,
            skip_count=self._result.skip_count + self._reader_skips(),
        )

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run(self) -> StepResult:
        """Process the whole input.

        Raises:
            ChunkflowError: Any read, processing (ABORT policy) or write
                failure, with ``chunk_index`` set.
        """
        self._reader.open()
        try:
            self._writer.open(self._resource)
            try:
                pool = (
                    ThreadPoolExecutor(
                        max_workers=self._max_workers,
                        thread_name_prefix="chunk-worker",
                    )
                    if self._max_workers > 1
                    else nullcontext()
                )
                with pool as executor:
                    self._run_chunks(executor)
            except BaseException:
                self._close_writer_after_failure()
                raise
            self._writer.close()
        finally:
            self._reader.close()

        return self.result

    def _run_chunks(self, executor: ThreadPoolExecutor | None) -> None:
        chunk_index = 0
        exhausted = False

        while not exhausted:
            if self._stop_event is not None and self._stop_event.is_set():
                self._result = replace(self._result, stopped=True)
                logger.info(
                    "chunk_loop_stopped",
                    extra={"chunks_committed": self._result.commit_count},
                )
                return

            chunk_index += 1
            try:
                items, exhausted = self._read_chunk()
                if not items:
                    return
                outputs, filtered, skipped = self._process_chunk(items, executor)
                if outputs:
                    self._write_chunk(outputs)
            except ChunkflowError as exc:
                exc.chunk_index = chunk_index
                logger.error(
                    "chunk_failed",
                    extra={
                        "chunk_index": chunk_index,
                        "error_code": exc.code,
                        "error": str(exc),
                    },
                )
                raise

            self._result = replace(
                self._result,
                read_count=self._result.read_count + len(items),
                filter_count=self._result.filter_count + filtered,
                write_count=self._result.write_count + len(outputs),
                skip_count=self._result.skip_count + skipped,
                commit_count=self._result.commit_count + 1,
            )
            logger.info(
                "chunk_committed",
                extra={
                    "chunk_index": chunk_index,
                    "read": len(items),
                    "written": len(outputs),
                    "filtered": filtered,
                    "skipped": skipped,
                },
            )

    # -------------------------------------------------------------------------
    # Chunk phases
    # -------------------------------------------------------------------------

    def _read_chunk(self) -> tuple[list[InputRecord], bool]:
        """Accumulate up to chunk_size records; report end of input."""
        items: list[InputRecord] = []
        while len(items) < self._chunk_size:
            record = self._reader.read()
            if record is None:
                return items, True
            items.append(record)
        return items, False

    def _process_chunk(
        self,
        items: list[InputRecord],
        executor: ThreadPoolExecutor | None,
    ) -> tuple[list[Any], int, int]:
        if executor is None:
            results = [self._process_one(record) for record in items]
        else:
            # map() yields in submission order
            results = list(executor.map(self._process_one, items))

        outputs: list[Any] = []
        filtered = 0
        skipped = 0
        for record, (output, error) in zip(items, results):
            if error is not None:
                if not self._should_skip(error):
                    raise error
                skipped += 1
                logger.warning(
                    "record_skipped",
                    extra={
                        "line_number": record.line_number,
                        "error_code": error.code,
                        "error": str(error),
                    },
                )
            elif output is None:
                filtered += 1
            else:
                outputs.append(output)
        return outputs, filtered, skipped

    def _process_one(
        self, record: InputRecord,
    ) -> tuple[Any | None, ProcessingError | None]:
        try:
            return self._processor.process(record), None
        except ProcessingError as exc:
            return None, exc
        except Exception as exc:
            wrapped = ProcessingError(
                f"Processor failed on line {record.line_number}: {exc}",
                record=record,
            )
            wrapped.__cause__ = exc
            return None, wrapped

    def _should_skip(self, error: ProcessingError) -> bool:
        """Policy point for processing failures."""
        return self._policy == ErrorPolicy.SKIP

    def _write_chunk(self, outputs: list[Any]) -> None:
        try:
            self._writer.write_all(outputs)
        except WriteError:
            raise
        except Exception as exc:
            raise WriteError(
                f"Writer failed on {self._resource}: {exc}",
                resource=str(self._resource),
            ) from exc

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _close_writer_after_failure(self) -> None:
        try:
            self._writer.close()
        except Exception:
            logger.exception(
                "writer_close_failed", extra={"resource": str(self._resource)},
            )

    def _reader_skips(self) -> int:
        return int(getattr(self._reader, "skipped_count", 0))
