"""
Tests for chunkflow_kernel.exceptions.

Validates the exception hierarchy, error codes, structured attributes and
message formatting.
"""

import pytest

from chunkflow_kernel.exceptions import (
    ChunkflowError,
    ConfigurationError,
    DuplicateRunError,
    ExecutionNotFoundError,
    InvalidCronExpressionError,
    JobNotRegisteredError,
    MalformedRecordError,
    ProcessingError,
    ReadError,
    ReaderNotOpenError,
    RunAlreadyActiveError,
    RunError,
    WriteError,
)


# =============================================================================
# Exception hierarchy tests
# =============================================================================


class TestExceptionHierarchy:
    @pytest.mark.parametrize(
        "exc_type",
        [ConfigurationError, ReadError, ProcessingError, WriteError, RunError],
    )
    def test_family_roots_are_chunkflow_errors(self, exc_type):
        assert issubclass(exc_type, ChunkflowError)

    def test_malformed_record_is_read_error(self):
        assert issubclass(MalformedRecordError, ReadError)

    def test_reader_not_open_is_read_error(self):
        assert issubclass(ReaderNotOpenError, ReadError)

    def test_invalid_cron_is_configuration_error(self):
        assert issubclass(InvalidCronExpressionError, ConfigurationError)

    @pytest.mark.parametrize(
        "exc_type",
        [
            DuplicateRunError,
            RunAlreadyActiveError,
            ExecutionNotFoundError,
            JobNotRegisteredError,
        ],
    )
    def test_run_errors(self, exc_type):
        assert issubclass(exc_type, RunError)


# =============================================================================
# Error codes
# =============================================================================


class TestErrorCodes:
    @pytest.mark.parametrize(
        "exc_type, code",
        [
            (ChunkflowError, "CHUNKFLOW_ERROR"),
            (ConfigurationError, "CONFIGURATION_ERROR"),
            (InvalidCronExpressionError, "INVALID_CRON_EXPRESSION"),
            (MalformedRecordError, "MALFORMED_RECORD"),
            (ReaderNotOpenError, "READER_NOT_OPEN"),
            (ProcessingError, "PROCESSING_ERROR"),
            (WriteError, "WRITE_ERROR"),
            (DuplicateRunError, "DUPLICATE_RUN"),
            (RunAlreadyActiveError, "RUN_ALREADY_ACTIVE"),
            (ExecutionNotFoundError, "EXECUTION_NOT_FOUND"),
            (JobNotRegisteredError, "JOB_NOT_REGISTERED"),
        ],
    )
    def test_code(self, exc_type, code):
        assert exc_type.code == code


# =============================================================================
# Exception construction tests
# =============================================================================


class TestExceptionConstruction:
    def test_run_context_defaults_to_none(self):
        exc = WriteError("disk full")
        assert exc.run_id is None
        assert exc.chunk_index is None

    def test_run_context_is_per_instance(self):
        first = WriteError("a")
        first.chunk_index = 2
        assert WriteError("b").chunk_index is None

    def test_configuration_error_key(self):
        exc = ConfigurationError("bad size", key="chunk.size")
        assert exc.key == "chunk.size"
        assert str(exc) == "bad size"

    def test_invalid_cron(self):
        exc = InvalidCronExpressionError("* *", "expected 5 or 6 fields, got 2")
        assert exc.expression == "* *"
        assert exc.key == "schedule.cron"
        assert "* *" in str(exc)
        assert "got 2" in str(exc)

    def test_malformed_record(self):
        exc = MalformedRecordError(line_number=4, expected=9, actual=7)
        assert (exc.line_number, exc.expected, exc.actual) == (4, 9, 7)
        assert "line 4" in str(exc)
        assert "expected 9" in str(exc)

    def test_processing_error_carries_record(self):
        record = object()
        assert ProcessingError("boom", record=record).record is record

    def test_write_error_resource(self):
        assert WriteError("x", resource="/tmp/out.csv").resource == "/tmp/out.csv"

    def test_duplicate_run(self):
        exc = DuplicateRunError("person_export", '{"timestamp":1}', "abc")
        assert exc.job_name == "person_export"
        assert exc.parameters_key == '{"timestamp":1}'
        assert exc.existing_run_id == "abc"
        assert "abc" in str(exc)

    def test_execution_not_found_keeps_run_id_unset(self):
        exc = ExecutionNotFoundError("r-1")
        assert exc.missing_run_id == "r-1"
        assert exc.run_id is None

    def test_job_not_registered_lists_available(self):
        exc = JobNotRegisteredError("nope", ("person_export",))
        assert exc.available == ("person_export",)
        assert "person_export" in str(exc)
