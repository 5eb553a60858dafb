"""
Delimited flat-file record writer.

Fields are extracted by name, in a fixed order, from each output record
(attribute or mapping key).  A chunk is rendered completely before the file
is touched, written as one block, flushed and fsynced.  If the write fails
the file is truncated back to where the chunk started, so a failed chunk
never leaves partial lines behind.
"""

from __future__ import annotations

import csv
import io
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Sequence, TextIO

from chunkflow_kernel.exceptions import ConfigurationError, WriteError
from chunkflow_kernel.logging_config import get_logger

from chunkflow_batch.domain.context import OUTPUT_PATH_KEY, ExecutionContext

logger = get_logger("batch.writer")


def resolve_output_resource(context: ExecutionContext) -> Path:
    """Resolve this run's output path from the execution context.

    Raises:
        ConfigurationError: If no output path was placed in the context.
            There is deliberately no static fallback path.
    """
    value = context.require(OUTPUT_PATH_KEY)
    if not str(value).strip():
        raise ConfigurationError(
            f"Execution context value for '{OUTPUT_PATH_KEY}' is blank",
            key=OUTPUT_PATH_KEY,
        )
    return Path(value)


def extract_field(record: Any, name: str) -> Any:
    """Return field ``name`` of ``record`` (mapping key or attribute).

    Raises:
        KeyError: If the record has no such field.
    """
    if isinstance(record, Mapping):
        return record[name]
    try:
        return getattr(record, name)
    except AttributeError:
        raise KeyError(name) from None


class DelimitedRecordWriter:
    """Write output records as delimited lines, no header.

    ``open()`` always creates (or truncates) the resource, so a run over an
    empty input still produces an empty output file.
    """

    def __init__(
        self,
        field_names: Sequence[str],
        delimiter: str = ",",
        encoding: str = "utf-8",
        line_separator: str = "\n",
        sync: bool = True,
    ) -> None:
        if not field_names:
            raise ConfigurationError("Writer requires at least one field name")
        self._field_names = tuple(field_names)
        self._delimiter = delimiter
        self._encoding = encoding
        self._line_separator = line_separator
        self._sync = sync
        self._handle: TextIO | None = None
        self._resource: Path | None = None
        self.written_count = 0

    @property
    def resource(self) -> Path | None:
        return self._resource

    @property
    def field_names(self) -> tuple[str, ...]:
        return self._field_names

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self, resource: Path | str) -> None:
        """Create the output resource.

        Raises:
            WriteError: If the resource cannot be created.
        """
        if self._handle is not None:
            raise WriteError(
                f"Writer already open on {self._resource}",
                resource=str(self._resource),
            )
        path = Path(resource)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = path.open("w", encoding=self._encoding, newline="")
        except OSError as exc:
            raise WriteError(
                f"Cannot open output resource {path}: {exc}", resource=str(path),
            ) from exc
        self._resource = path
        self.written_count = 0
        logger.debug("writer_opened", extra={"resource": str(path)})

    def close(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            handle.close()
        except OSError as exc:
            raise WriteError(
                f"Cannot close output resource {self._resource}: {exc}",
                resource=str(self._resource),
            ) from exc

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    def write_all(self, records: Sequence[Any]) -> None:
        """Write one chunk.

        Raises:
            WriteError: If the writer is not open, a field cannot be
                extracted, or the sink rejects the write.
        """
        if self._handle is None:
            raise WriteError("Writer is not open")
        if not records:
            return

        payload = "".join(self._render(record) for record in records)

        offset = self._handle.tell()
        try:
            self._handle.write(payload)
            self._handle.flush()
            if self._sync:
                os.fsync(self._handle.fileno())
        except OSError as exc:
            self._rollback(offset)
            raise WriteError(
                f"Write of {len(records)} record(s) to {self._resource} failed: {exc}",
                resource=str(self._resource),
            ) from exc

        self.written_count += len(records)

    def _render(self, record: Any) -> str:
        try:
            values = [extract_field(record, name) for name in self._field_names]
        except KeyError as exc:
            raise WriteError(
                f"Output record {record!r} has no field {exc}",
                resource=str(self._resource),
            ) from exc

        buffer = io.StringIO()
        csv.writer(
            buffer, delimiter=self._delimiter, lineterminator=self._line_separator,
        ).writerow(["" if v is None else v for v in values])
        return buffer.getvalue()

    def _rollback(self, offset: int) -> None:
        """Truncate a partially written chunk."""
        if self._handle is None:
            return
        try:
            self._handle.seek(offset)
            self._handle.truncate()
        except (OSError, ValueError):
            logger.exception(
                "writer_rollback_failed",
                extra={"resource": str(self._resource), "offset": offset},
            )
