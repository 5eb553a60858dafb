"""
Run listeners -- hooks invoked once per run, outside chunk boundaries.

Contract:
    ``before_run(context)`` runs after the execution context is created and
    before the reader/writer are built, so values it stores (e.g. the output
    path) are visible to their factories.

    ``after_run(context, status)`` runs once the chunk loop has finished or
    failed.  Returning a RunStatus overrides the run's final status;
    returning None keeps it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Protocol, runtime_checkable

from chunkflow_kernel.domain.clock import Clock, SystemClock
from chunkflow_kernel.exceptions import ConfigurationError
from chunkflow_kernel.logging_config import get_logger

from chunkflow_batch.domain.context import OUTPUT_PATH_KEY, ExecutionContext
from chunkflow_batch.domain.types import RunStatus

logger = get_logger("batch.listeners")


@runtime_checkable
class RunListener(Protocol):
    def before_run(self, context: ExecutionContext) -> None:
        ...

    def after_run(
        self, context: ExecutionContext, status: RunStatus,
    ) -> RunStatus | None:
        ...


class CallbackListener:
    """Adapt a plain function pair to the RunListener protocol."""

    def __init__(
        self,
        before: Callable[[ExecutionContext], None] | None = None,
        after: Callable[[ExecutionContext, RunStatus], RunStatus | None] | None = None,
    ) -> None:
        self._before = before
        self._after = after

    def before_run(self, context: ExecutionContext) -> None:
        if self._before is not None:
            self._before(context)

    def after_run(
        self, context: ExecutionContext, status: RunStatus,
    ) -> RunStatus | None:
        if self._after is None:
            return None
        return self._after(context, status)


class OutputPathListener:
    """Compute a fresh output path per run: ``<base>_<epoch millis><suffix>``.

    The path is stored under ``OUTPUT_PATH_KEY`` where the writer's resource
    resolver picks it up.
    """

    def __init__(
        self,
        base_path: str | Path,
        clock: Clock | None = None,
        suffix: str = ".csv",
        context_key: str = OUTPUT_PATH_KEY,
    ) -> None:
        if not str(base_path).strip():
            raise ConfigurationError(
                "Output base path must not be empty", key="output.file",
            )
        self._base_path = str(base_path)
        self._clock = clock or SystemClock()
        self._suffix = suffix
        self._context_key = context_key

    def before_run(self, context: ExecutionContext) -> None:
        path = f"{self._base_path}_{self._clock.epoch_millis()}{self._suffix}"
        context.put(self._context_key, path)
        logger.info("output_path_resolved", extra={"output_path": path})

    def after_run(
        self, context: ExecutionContext, status: RunStatus,
    ) -> RunStatus | None:
        return None
