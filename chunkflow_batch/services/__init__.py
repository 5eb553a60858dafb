"""
chunkflow_batch.services -- Chunk runner, job driver, stores, hooks, scheduler.
"""

from chunkflow_batch.services.chunk_runner import ChunkRunner
from chunkflow_batch.services.job_driver import JobDriver
from chunkflow_batch.services.listeners import (
    CallbackListener,
    OutputPathListener,
    RunListener,
)
from chunkflow_batch.services.run_store import (
    ExecutionStore,
    InMemoryExecutionStore,
    SqlExecutionStore,
)
from chunkflow_batch.services.scheduler import BatchScheduler

__all__ = [
    "BatchScheduler",
    "CallbackListener",
    "ChunkRunner",
    "ExecutionStore",
    "InMemoryExecutionStore",
    "JobDriver",
    "OutputPathListener",
    "RunListener",
    "SqlExecutionStore",
]
