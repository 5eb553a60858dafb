"""Record readers and writers for the chunk runner (file I/O only, no DB)."""

from chunkflow_batch.adapters.base import RecordReader, RecordWriter
from chunkflow_batch.adapters.reader import DelimitedRecordReader
from chunkflow_batch.adapters.writer import (
    DelimitedRecordWriter,
    extract_field,
    resolve_output_resource,
)

__all__ = [
    "RecordReader",
    "RecordWriter",
    "DelimitedRecordReader",
    "DelimitedRecordWriter",
    "extract_field",
    "resolve_output_resource",
]
