"""
Tests for chunkflow_batch.services.listeners -- run hooks.
"""

from datetime import datetime, timezone

import pytest

from chunkflow_kernel.domain.clock import DeterministicClock
from chunkflow_kernel.exceptions import ConfigurationError

from chunkflow_batch.domain.context import OUTPUT_PATH_KEY, ExecutionContext
from chunkflow_batch.domain.types import RunStatus
from chunkflow_batch.services.listeners import (
    CallbackListener,
    OutputPathListener,
    RunListener,
)

# DeterministicClock default: 2024-01-01T12:00:00Z
DEFAULT_MILLIS = 1704110400000


class TestOutputPathListener:
    def test_path_is_base_underscore_millis_csv(self, deterministic_clock):
        context = ExecutionContext()
        OutputPathListener("out/persons", clock=deterministic_clock).before_run(context)
        assert context.get(OUTPUT_PATH_KEY) == f"out/persons_{DEFAULT_MILLIS}.csv"

    def test_each_run_gets_a_fresh_path(self, deterministic_clock):
        listener = OutputPathListener("out/persons", clock=deterministic_clock)
        first, second = ExecutionContext(), ExecutionContext()

        listener.before_run(first)
        deterministic_clock.advance(0.25)
        listener.before_run(second)

        assert first.get(OUTPUT_PATH_KEY) == f"out/persons_{DEFAULT_MILLIS}.csv"
        assert second.get(OUTPUT_PATH_KEY) == f"out/persons_{DEFAULT_MILLIS + 250}.csv"

    def test_custom_suffix_and_key(self):
        clock = DeterministicClock(datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc))
        context = ExecutionContext()
        OutputPathListener(
            "data/x", clock=clock, suffix=".txt", context_key="target",
        ).before_run(context)
        assert context.get("target") == "data/x_1000.txt"

    def test_naive_clock_treated_as_utc(self):
        clock = DeterministicClock(datetime(1970, 1, 1, 0, 0, 2))
        context = ExecutionContext()
        OutputPathListener("x", clock=clock).before_run(context)
        assert context.get(OUTPUT_PATH_KEY) == "x_2000.csv"

    def test_after_run_keeps_status(self, deterministic_clock):
        listener = OutputPathListener("x", clock=deterministic_clock)
        assert listener.after_run(ExecutionContext(), RunStatus.COMPLETED) is None

    def test_blank_base_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            OutputPathListener("  ")
        assert exc_info.value.key == "output.file"

    def test_logs_resolved_path(self, deterministic_clock, captured_logs):
        OutputPathListener("out/p", clock=deterministic_clock).before_run(ExecutionContext())
        resolved = [r for r in captured_logs() if r["message"] == "output_path_resolved"]
        assert resolved[0]["output_path"] == f"out/p_{DEFAULT_MILLIS}.csv"

    def test_satisfies_protocol(self):
        assert isinstance(OutputPathListener("x"), RunListener)


class TestCallbackListener:
    def test_before_callback_sees_context(self):
        seen = []
        listener = CallbackListener(before=lambda ctx: seen.append(ctx.get("k")))
        listener.before_run(ExecutionContext({"k": "v"}))
        assert seen == ["v"]

    def test_after_callback_can_override(self):
        listener = CallbackListener(after=lambda ctx, status: RunStatus.FAILED)
        assert listener.after_run(ExecutionContext(), RunStatus.COMPLETED) == RunStatus.FAILED

    def test_no_callbacks_is_a_no_op(self):
        listener = CallbackListener()
        listener.before_run(ExecutionContext())
        assert listener.after_run(ExecutionContext(), RunStatus.COMPLETED) is None
