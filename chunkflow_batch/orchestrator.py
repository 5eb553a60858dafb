"""
BatchOrchestrator -- DI container for the chunk pipeline.

Contract:
    Resolves the configured job from the JobRegistry, builds its JobPlan,
    chooses an execution store, and wires a JobDriver and (on request) a
    BatchScheduler.  Single place where all batch dependencies are composed.

Architecture: chunkflow_batch (top-level).  This is the canonical entry point
    for configuring and running jobs; the CLI is a thin shell around it.

Invariants enforced:
    - Clock injection (driver, hooks and scheduler share one Clock).
    - The store is SQL-backed exactly when ``database_url`` is set, unless
      an explicit store is passed.
"""

from __future__ import annotations

from typing import Any

from chunkflow_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from chunkflow_kernel.domain.clock import Clock, SystemClock
from chunkflow_kernel.logging_config import get_logger

from chunkflow_batch.domain.types import ExecutionRecord
from chunkflow_batch.jobs import JobPlan, JobRegistry, default_job_registry
from chunkflow_batch.services.job_driver import JobDriver
from chunkflow_batch.services.run_store import (
    ExecutionStore,
    InMemoryExecutionStore,
    SqlExecutionStore,
)
from chunkflow_batch.services.scheduler import BatchScheduler
from chunkflow_config.schema import JobConfig

logger = get_logger("batch.orchestrator")


def build_store(config: JobConfig) -> ExecutionStore:
    """In-memory store, or a SQL store with tables created when configured."""
    if config.database_url is None:
        return InMemoryExecutionStore()
    engine = init_engine_from_url(config.database_url)
    create_tables(engine)
    return SqlExecutionStore(get_session_factory())


class BatchOrchestrator:
    """DI container for the chunk pipeline.

    Contract:
        - ``from_config()`` factory creates a fully wired orchestrator.
        - ``run()`` executes one run through the driver.
        - ``create_scheduler()`` returns a BatchScheduler for background use.

    Non-goals:
        - Does NOT start the scheduler automatically -- caller decides.
    """

    def __init__(
        self,
        config: JobConfig,
        plan: JobPlan,
        driver: JobDriver,
        clock: Clock | None = None,
    ) -> None:
        self._config = config
        self._plan = plan
        self._driver = driver
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: JobConfig,
        clock: Clock | None = None,
        store: ExecutionStore | None = None,
        registry: JobRegistry | None = None,
    ) -> BatchOrchestrator:
        """Create a fully wired BatchOrchestrator from a JobConfig.

        Args:
            config: Validated job configuration.
            clock: Optional clock for deterministic testing.
            store: Optional explicit store. If None, one is built from
                ``config.database_url``.
            registry: Optional pre-configured registry. If None, uses the
                default registry with the shipped jobs.

        Raises:
            JobNotRegisteredError: If ``config.job_name`` is not registered.
        """
        effective_clock = clock or SystemClock()
        jobs = registry if registry is not None else default_job_registry()
        plan = jobs.get(config.job_name).build(config, effective_clock)
        effective_store = store if store is not None else build_store(config)

        driver = JobDriver.from_plan(plan, store=effective_store, clock=effective_clock)
        logger.info(
            "orchestrator_ready",
            extra={
                "job_name": plan.job_name,
                "store": type(effective_store).__name__,
                "listener_count": len(plan.listeners),
            },
        )
        return cls(config=config, plan=plan, driver=driver, clock=effective_clock)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def run(self, parameters: dict[str, Any] | None = None) -> ExecutionRecord:
        """Execute one run; see ``JobDriver.run`` for raised errors."""
        return self._driver.run(parameters)

    def create_scheduler(
        self, poll_interval_seconds: float | None = None,
    ) -> BatchScheduler:
        """Create a BatchScheduler on the configured cron expression.

        Raises:
            InvalidCronExpressionError: If the cron expression is invalid.
        """
        return BatchScheduler(
            driver=self._driver,
            cron_expression=self._config.cron_expression,
            clock=self._clock,
            poll_interval_seconds=(
                poll_interval_seconds
                if poll_interval_seconds is not None
                else self._config.poll_interval_seconds
            ),
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> JobConfig:
        return self._config

    @property
    def plan(self) -> JobPlan:
        return self._plan

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def driver(self) -> JobDriver:
        return self._driver

    @property
    def store(self) -> ExecutionStore:
        return self._driver.store
