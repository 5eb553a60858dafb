"""
Delimited flat-file record reader.

Uses the csv module over a streamed file handle.  Skips a fixed number of
header lines once at open, ignores blank lines and comment lines, and maps
each remaining line onto the configured field names.  Handles BOM via
utf-8-sig when encoding is utf-8.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterator, Sequence, TextIO

from chunkflow_kernel.exceptions import (
    ConfigurationError,
    MalformedRecordError,
    ReaderNotOpenError,
    ReadError,
)
from chunkflow_kernel.logging_config import get_logger

from chunkflow_batch.domain.types import ErrorPolicy, InputRecord

logger = get_logger("batch.reader")


def _get_encoding(encoding: str) -> str:
    if encoding.lower() in ("utf-8", "utf8"):
        return "utf-8-sig"  # Strip BOM if present
    return encoding


class DelimitedRecordReader:
    """Read a delimited text file as one InputRecord per line.

    ``read()`` returns None once input is exhausted.  With
    ``malformed_policy=ErrorPolicy.SKIP`` lines whose field count does not
    match ``field_names`` are logged and counted in ``skipped_count``
    instead of raising ``MalformedRecordError``.
    """

    def __init__(
        self,
        path: Path | str,
        field_names: Sequence[str],
        delimiter: str = ",",
        lines_to_skip: int = 1,
        encoding: str = "utf-8",
        comment_prefixes: Sequence[str] = ("#",),
        malformed_policy: ErrorPolicy = ErrorPolicy.ABORT,
    ) -> None:
        if not field_names:
            raise ConfigurationError("Reader requires at least one field name")
        if lines_to_skip < 0:
            raise ConfigurationError(
                f"lines_to_skip must be >= 0, got {lines_to_skip}",
                key="input.lines-to-skip",
            )
        self._path = Path(path)
        self._field_names = tuple(field_names)
        self._delimiter = delimiter
        self._lines_to_skip = lines_to_skip
        self._encoding = encoding
        self._comment_prefixes = tuple(comment_prefixes)
        self._malformed_policy = malformed_policy
        self._handle: TextIO | None = None
        self._rows: Iterator[list[str]] | None = None
        self._skipped_lines = 0
        self.skipped_count = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def field_names(self) -> tuple[str, ...]:
        return self._field_names

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> None:
        """Open the source and skip the header lines.

        Raises:
            ConfigurationError: If the input file does not exist.
        """
        if self._handle is not None:
            return
        if not self._path.is_file():
            raise ConfigurationError(
                f"Input file not found: {self._path}", key="input.file",
            )

        self._handle = self._path.open(
            "r", encoding=_get_encoding(self._encoding), newline="",
        )
        self._skipped_lines = 0
        for _ in range(self._lines_to_skip):
            if next(self._handle, None) is None:
                break
            self._skipped_lines += 1
        self._rows = csv.reader(self._handle, delimiter=self._delimiter)
        self.skipped_count = 0

        logger.debug(
            "reader_opened",
            extra={"path": str(self._path), "lines_skipped": self._skipped_lines},
        )

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
        self._handle = None
        self._rows = None

    def __enter__(self) -> DelimitedRecordReader:
        self.open()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def read(self) -> InputRecord | None:
        """Return the next record, or None at end of input.

        Raises:
            ReaderNotOpenError: If called outside open()/close().
            MalformedRecordError: On a field-count mismatch (ABORT policy).
        """
        if self._rows is None:
            raise ReaderNotOpenError(str(self._path))

        while True:
            try:
                row = next(self._rows, None)
            except csv.Error as exc:
                raise ReadError(
                    f"Unparseable input at line {self._current_line()}: {exc}"
                ) from exc

            if row is None:
                return None
            if not row or self._is_comment(row):
                continue

            line_number = self._current_line()
            if len(row) != len(self._field_names):
                error = MalformedRecordError(
                    line_number, len(self._field_names), len(row),
                )
                if self._malformed_policy == ErrorPolicy.SKIP:
                    self.skipped_count += 1
                    logger.warning(
                        "malformed_record_skipped",
                        extra={
                            "path": str(self._path),
                            "line_number": line_number,
                            "expected": error.expected,
                            "actual": error.actual,
                        },
                    )
                    continue
                raise error

            return InputRecord(
                names=self._field_names,
                values=tuple(row),
                line_number=line_number,
            )

    def __iter__(self) -> Iterator[InputRecord]:
        while (record := self.read()) is not None:
            yield record

    def _current_line(self) -> int:
        line_num = getattr(self._rows, "line_num", 0)
        return self._skipped_lines + line_num

    def _is_comment(self, row: list[str]) -> bool:
        return bool(self._comment_prefixes) and row[0].startswith(self._comment_prefixes)
