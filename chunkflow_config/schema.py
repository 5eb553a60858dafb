"""
JobConfig schema.

The typed, frozen view of one job's configuration.  YAML files are
flattened and validated by ``chunkflow_config.loader`` and produce exactly
one of these; nothing downstream reads YAML or environment variables.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_CRON = "0 * * * * *"


@dataclass(frozen=True)
class JobConfig:
    """Settings for one job, after defaults, file and environment."""

    input_file: str
    output_file: str
    job_name: str = "person_export"
    chunk_size: int = 3
    skip_substring: str = "Professor"
    lines_to_skip: int = 1
    delimiter: str = ","
    encoding: str = "utf-8"
    processing_error_policy: str = "abort"  # abort | skip
    malformed_record_policy: str = "abort"  # abort | skip
    max_workers: int = 1
    cron_expression: str = DEFAULT_CRON
    poll_interval_seconds: float = 1.0
    database_url: str | None = None
