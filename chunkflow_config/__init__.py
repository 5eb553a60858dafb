"""
chunkflow_config -- single public entrypoint for job configuration.

Responsibility:
    Provides the ONLY way to obtain job configuration at runtime through
    ``get_job_config()``.  No other component reads YAML files or
    ``CHUNKFLOW_*`` environment variables directly.

Architecture position:
    Configuration -- sits above ``chunkflow_kernel``.  The orchestrator and
    CLI in ``chunkflow_batch`` consume the returned ``JobConfig``; job
    definitions see it only as a type.

Failure modes:
    - ``ConfigurationError`` -- missing file, invalid YAML, unknown key,
      missing required key, or an invalid value.

Audit relevance:
    Every successful ``get_job_config()`` call emits a
    ``CHUNKFLOW_CONFIG_TRACE`` log entry naming the source file and the
    effective settings, so a run's log shows what it was configured with.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from chunkflow_kernel.logging_config import get_logger

from chunkflow_config.loader import load_job_config
from chunkflow_config.schema import JobConfig

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "person_export.yaml"


def get_job_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> JobConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: YAML job file. Defaults to the shipped person_export file.
        environ: Environment for ``CHUNKFLOW_*`` overrides. Defaults to
            ``os.environ``; pass ``{}`` to ignore the environment.

    Raises:
        ConfigurationError: If the file cannot be loaded or validated.
    """
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = load_job_config(source, os.environ if environ is None else environ)

    _logger.info(
        "CHUNKFLOW_CONFIG_TRACE",
        extra={
            "trace_type": "CHUNKFLOW_CONFIG_TRACE",
            "source": source,
            "job_name": config.job_name,
            "input_file": config.input_file,
            "output_file": config.output_file,
            "chunk_size": config.chunk_size,
            "skip_substring": config.skip_substring,
            "processing_error_policy": config.processing_error_policy,
            "malformed_record_policy": config.malformed_record_policy,
            "max_workers": config.max_workers,
            "cron_expression": config.cron_expression,
            "durable_store": config.database_url is not None,
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "JobConfig",
    "get_job_config",
]
