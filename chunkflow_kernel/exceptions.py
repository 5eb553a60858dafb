"""
Typed exception hierarchy for the chunkflow batch engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A batch run fails for very different reasons: the run was misconfigured,
an input line was malformed, the processor rejected a record, the sink
refused a write, or the run was a duplicate. Callers (the scheduler, the
CLI, tests) react differently to each, so every failure has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, log-safe)
  3. Structured DATA (line numbers, records, resources, run ids)

Runtime context is attached while the error propagates: the chunk runner
sets ``chunk_index`` and the job driver sets ``run_id``. Both default to
None on a freshly constructed exception.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ChunkflowError (base)
    |
    +-- ConfigurationError
    |   +-- InvalidCronExpressionError
    |
    +-- ReadError
    |   +-- MalformedRecordError
    |   +-- ReaderNotOpenError
    |
    +-- ProcessingError
    |
    +-- WriteError
    |
    +-- RunError
        +-- DuplicateRunError
        +-- RunAlreadyActiveError
        +-- ExecutionNotFoundError
        +-- JobNotRegisteredError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                     | When Raised
-------------------------|---------------------------------------------------
CONFIGURATION_ERROR      | Missing/invalid config or run-scoped parameter
INVALID_CRON_EXPRESSION  | Cron string cannot be parsed
MALFORMED_RECORD         | Field count on an input line != field names
READER_NOT_OPEN          | read() called before open() / after close()
PROCESSING_ERROR         | Processor cannot handle a record
WRITE_ERROR              | Sink unavailable, field missing, partial write
DUPLICATE_RUN            | Parameters match a previous COMPLETED run
RUN_ALREADY_ACTIVE       | A run is already in flight for this driver
EXECUTION_NOT_FOUND      | Unknown run id in the execution store
JOB_NOT_REGISTERED       | Unknown job name in the job registry
"""

from typing import Any


class ChunkflowError(Exception):
    """
    Base exception for all chunkflow errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CHUNKFLOW_ERROR"

    run_id: str | None = None
    chunk_index: int | None = None


# Configuration


class ConfigurationError(ChunkflowError):
    """Missing or invalid configuration or run-scoped parameter."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, key: str | None = None):
        self.key = key
        super().__init__(message)


class InvalidCronExpressionError(ConfigurationError):
    """Cron expression could not be parsed."""

    code: str = "INVALID_CRON_EXPRESSION"

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(
            f"Invalid cron expression '{expression}': {reason}",
            key="schedule.cron",
        )


# Reading


class ReadError(ChunkflowError):
    """Base exception for input-side errors."""

    code: str = "READ_ERROR"


class MalformedRecordError(ReadError):
    """An input line does not have the configured number of fields."""

    code: str = "MALFORMED_RECORD"

    def __init__(self, line_number: int, expected: int, actual: int):
        self.line_number = line_number
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Malformed record at line {line_number}: "
            f"expected {expected} fields, found {actual}"
        )


class ReaderNotOpenError(ReadError):
    """The reader was used outside its open/close window."""

    code: str = "READER_NOT_OPEN"

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"Reader for {resource} is not open")


# Processing


class ProcessingError(ChunkflowError):
    """The processor could not handle a record."""

    code: str = "PROCESSING_ERROR"

    def __init__(self, message: str, record: Any = None):
        self.record = record
        super().__init__(message)


# Writing


class WriteError(ChunkflowError):
    """The sink could not durably accept a chunk."""

    code: str = "WRITE_ERROR"

    def __init__(self, message: str, resource: str | None = None):
        self.resource = resource
        super().__init__(message)


# Run lifecycle


class RunError(ChunkflowError):
    """Base exception for run lifecycle errors."""

    code: str = "RUN_ERROR"


class DuplicateRunError(RunError):
    """Run parameters match a previous COMPLETED run of the same job."""

    code: str = "DUPLICATE_RUN"

    def __init__(self, job_name: str, parameters_key: str, existing_run_id: str):
        self.job_name = job_name
        self.parameters_key = parameters_key
        self.existing_run_id = existing_run_id
        super().__init__(
            f"Job '{job_name}' already completed with parameters "
            f"{parameters_key} (run {existing_run_id})"
        )


class RunAlreadyActiveError(RunError):
    """Another run of this job is still in flight."""

    code: str = "RUN_ALREADY_ACTIVE"

    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(f"Job '{job_name}' already has an active run")


class ExecutionNotFoundError(RunError):
    """No execution record exists for the given run id."""

    code: str = "EXECUTION_NOT_FOUND"

    def __init__(self, run_id: str):
        # Looked up, not attached by the driver.
        self.missing_run_id = run_id
        super().__init__(f"Execution not found: {run_id}")


class JobNotRegisteredError(RunError):
    """No job definition is registered under the given name."""

    code: str = "JOB_NOT_REGISTERED"

    def __init__(self, job_name: str, available: tuple[str, ...] = ()):
        self.job_name = job_name
        self.available = available
        super().__init__(
            f"No job registered for '{job_name}'. Available: {list(available)}"
        )
