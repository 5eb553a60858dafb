"""
chunkflow_batch.domain -- Pure record types and the run context.

ZERO I/O.
"""

from chunkflow_batch.domain.context import (
    JOB_NAME_KEY,
    OUTPUT_PATH_KEY,
    RUN_ID_KEY,
    ExecutionContext,
)
from chunkflow_batch.domain.types import (
    ErrorPolicy,
    ExecutionRecord,
    InputRecord,
    RunStatus,
    StepResult,
    parameters_key,
)

__all__ = [
    "ErrorPolicy",
    "ExecutionContext",
    "ExecutionRecord",
    "InputRecord",
    "JOB_NAME_KEY",
    "OUTPUT_PATH_KEY",
    "RUN_ID_KEY",
    "RunStatus",
    "StepResult",
    "parameters_key",
]
