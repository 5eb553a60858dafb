"""
chunkflow command line: run a job once, or on its cron schedule.

Usage:
    chunkflow [--config FILE] [--log-level LEVEL] run [--param KEY=VALUE ...]
    chunkflow [--config FILE] [--log-level LEVEL] schedule [--poll-interval SECONDS]

Examples:
    # One run with the shipped person_export config (timestamp added)
    chunkflow run

    # Re-running identical parameters after a COMPLETED run exits 2
    chunkflow --config jobs/people.yaml run --param timestamp=1700000000000

    # Fire on the configured cron until Ctrl+C
    chunkflow schedule

Exit codes:
    0  run COMPLETED (or scheduler stopped cleanly)
    1  run FAILED or STOPPED, configuration error, or any other error
    2  duplicate run (parameters match a COMPLETED run)
"""

from __future__ import annotations

import argparse
import logging
import re
import sys
from pathlib import Path
from typing import Any, Sequence

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_DUPLICATE = 2

_INTEGER = re.compile(r"-?(0|[1-9][0-9]*)")


def _parse_param(text: str) -> tuple[str, Any]:
    """Split KEY=VALUE; a canonical integer VALUE becomes an int.

    The scheduler and the default ``timestamp`` both pass ints, so the
    same run gets the same parameters key from every entry point.
    """
    key, sep, value = text.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {text!r}")
    if _INTEGER.fullmatch(value):
        return key.strip(), int(value)
    return key.strip(), value


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chunkflow",
        description="Chunk-oriented batch pipeline: read, filter, write in chunks.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML job file (default: the shipped person_export config).",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Structured log level written to stderr (default: INFO).",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Execute one run and exit.")
    run.add_argument(
        "--param",
        dest="params",
        action="append",
        type=_parse_param,
        default=[],
        metavar="KEY=VALUE",
        help=(
            "Run parameter (repeatable); integer values are passed as ints. "
            "'timestamp' is added unless given."
        ),
    )

    schedule = commands.add_parser("schedule", help="Fire runs on the cron schedule.")
    schedule.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between schedule checks (default: from config).",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    # Lazy imports so argument errors fail fast
    from chunkflow_kernel.exceptions import ChunkflowError, DuplicateRunError
    from chunkflow_kernel.logging_config import configure_logging

    from chunkflow_batch.domain.types import RunStatus
    from chunkflow_batch.orchestrator import BatchOrchestrator
    from chunkflow_config import get_job_config

    configure_logging(level=getattr(logging, args.log_level))

    try:
        orchestrator = BatchOrchestrator.from_config(get_job_config(args.config))
    except ChunkflowError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FAILED

    if args.command == "schedule":
        return _schedule(orchestrator, args.poll_interval)

    parameters: dict[str, Any] = dict(args.params)
    if "timestamp" not in parameters:
        parameters["timestamp"] = orchestrator.clock.epoch_millis()

    try:
        record = orchestrator.run(parameters)
    except DuplicateRunError as e:
        print(f"DUPLICATE: {e}", file=sys.stderr)
        return EXIT_DUPLICATE
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FAILED

    print(
        f"Run {record.run_id} {record.status.value}: "
        f"read={record.read_count} written={record.write_count} "
        f"filtered={record.filter_count} skipped={record.skip_count} "
        f"commits={record.commit_count}"
    )
    return EXIT_OK if record.status == RunStatus.COMPLETED else EXIT_FAILED


def _schedule(orchestrator: Any, poll_interval: float | None) -> int:
    from chunkflow_kernel.exceptions import ChunkflowError

    try:
        scheduler = orchestrator.create_scheduler(poll_interval)
    except ChunkflowError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FAILED

    scheduler.start()
    print(
        f"Scheduler started for {orchestrator.plan.job_name} "
        f"(cron {orchestrator.config.cron_expression!r}, next {scheduler.next_fire_at}). "
        "Ctrl+C to stop."
    )
    try:
        scheduler.wait()
    except KeyboardInterrupt:
        print("Stopping...")
    finally:
        scheduler.stop()
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
