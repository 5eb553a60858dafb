"""
chunkflow_batch -- Chunk-oriented batch pipeline engine.

Reads delimited records, passes each through a processor that may drop it,
and writes survivors in fixed-size chunks, one commit per chunk.  Runs are
driven by a JobDriver that records every run in an execution store and
rejects re-runs of parameters that already completed.  An in-process cron
trigger fires runs on a schedule.

Architecture:
    chunkflow_batch/ is a top-level package.  chunkflow_kernel never imports
    from it.  chunkflow_config is imported only by the orchestrator and CLI.

Invariants:
    - Chunks are committed in input order; a failed chunk ends the run and
      leaves earlier chunks' output in place.
    - One active run per driver.
    - A COMPLETED run's parameters are never run again.
    - Clock injection (no datetime.now() calls outside SystemClock).
    - Schedule evaluation is pure.
"""
