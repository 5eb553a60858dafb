"""Record processors: the protocol, composition, and shipped business rules."""

from chunkflow_batch.processors.base import CompositeProcessor, RecordProcessor
from chunkflow_batch.processors.person import (
    DEFAULT_SKIP_SUBSTRING,
    PersonName,
    TitleFilterProcessor,
)

__all__ = [
    "CompositeProcessor",
    "DEFAULT_SKIP_SUBSTRING",
    "PersonName",
    "RecordProcessor",
    "TitleFilterProcessor",
]
