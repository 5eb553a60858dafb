"""
chunkflow_batch.jobs -- Step/plan types, job registry, and shipped jobs.
"""

from chunkflow_batch.jobs.base import (
    ChunkStep,
    JobDefinition,
    JobPlan,
    JobRegistry,
)
from chunkflow_batch.jobs.person_export import PersonExportJob


def default_job_registry() -> JobRegistry:
    """Create a JobRegistry pre-loaded with the shipped jobs."""
    registry = JobRegistry()
    registry.register(PersonExportJob())
    return registry


__all__ = [
    "ChunkStep",
    "JobDefinition",
    "JobPlan",
    "JobRegistry",
    "PersonExportJob",
    "default_job_registry",
]
