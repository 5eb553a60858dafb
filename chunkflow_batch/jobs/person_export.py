"""
person_export job: people CSV -> ``first,last`` CSV, minus a title match.

Input columns (one header line, comma-delimited):
    person_ID, name, first, last, middle, email, phone, fax, title
Output: ``first,last`` per line, no header, written to
    ``<output.file>_<epoch millis>.csv``.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from chunkflow_kernel.domain.clock import Clock

from chunkflow_batch.adapters.reader import DelimitedRecordReader
from chunkflow_batch.adapters.writer import DelimitedRecordWriter
from chunkflow_batch.domain.context import ExecutionContext
from chunkflow_batch.domain.types import ErrorPolicy
from chunkflow_batch.jobs.base import ChunkStep, JobPlan
from chunkflow_batch.processors.person import TitleFilterProcessor
from chunkflow_batch.services.listeners import OutputPathListener

if TYPE_CHECKING:
    from chunkflow_config.schema import JobConfig

JOB_NAME = "person_export"

PERSON_FIELDS: tuple[str, ...] = (
    "person_ID",
    "name",
    "first",
    "last",
    "middle",
    "email",
    "phone",
    "fax",
    "title",
)

OUTPUT_FIELDS: tuple[str, ...] = ("first", "last")


class PersonExportJob:
    """Wires reader, title filter, writer and the output-path hook."""

    @property
    def name(self) -> str:
        return JOB_NAME

    @property
    def description(self) -> str:
        return "Export first/last names, skipping a title substring"

    def build(self, config: JobConfig, clock: Clock) -> JobPlan:
        input_path = Path(config.input_file)
        malformed_policy = ErrorPolicy(config.malformed_record_policy)

        def reader_factory(context: ExecutionContext) -> DelimitedRecordReader:
            return DelimitedRecordReader(
                input_path,
                PERSON_FIELDS,
                delimiter=config.delimiter,
                lines_to_skip=config.lines_to_skip,
                encoding=config.encoding,
                malformed_policy=malformed_policy,
            )

        def writer_factory(context: ExecutionContext) -> DelimitedRecordWriter:
            return DelimitedRecordWriter(OUTPUT_FIELDS, delimiter=",")

        step = ChunkStep(
            reader_factory=reader_factory,
            processor=TitleFilterProcessor(config.skip_substring),
            writer_factory=writer_factory,
            chunk_size=config.chunk_size,
            processing_error_policy=ErrorPolicy(config.processing_error_policy),
            max_workers=config.max_workers,
        )
        return JobPlan(
            job_name=JOB_NAME,
            step=step,
            listeners=(OutputPathListener(config.output_file, clock=clock),),
        )
