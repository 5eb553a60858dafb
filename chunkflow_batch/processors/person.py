"""
Person export business rule.

Drops people whose title contains a configured substring and projects the
rest to their first and last name.
"""

from __future__ import annotations

from dataclasses import dataclass

from chunkflow_kernel.exceptions import ProcessingError

from chunkflow_batch.domain.types import InputRecord

DEFAULT_SKIP_SUBSTRING = "Professor"


@dataclass(frozen=True)
class PersonName:
    """Output record: the (first, last) projection of a person row."""

    first: str
    last: str


class TitleFilterProcessor:
    """Filter on ``title``, project to ``PersonName``."""

    def __init__(self, skip_substring: str = DEFAULT_SKIP_SUBSTRING) -> None:
        if not skip_substring:
            raise ValueError("skip_substring must be non-empty")
        self._skip_substring = skip_substring

    @property
    def skip_substring(self) -> str:
        return self._skip_substring

    def process(self, record: InputRecord) -> PersonName | None:
        try:
            title = record["title"]
            first = record["first"]
            last = record["last"]
        except KeyError as exc:
            raise ProcessingError(
                f"Record at line {record.line_number} has no field {exc}",
                record=record,
            ) from exc

        if self._skip_substring in title:
            return None
        return PersonName(first=first, last=last)
