"""
chunkflow_batch.models -- ORM models for durable execution records.

Architecture: chunkflow_batch/models. Imports from chunkflow_kernel.db.base only.
"""

from chunkflow_batch.models.execution import JobExecutionModel

__all__ = [
    "JobExecutionModel",
]
