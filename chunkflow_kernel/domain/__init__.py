"""
Pure kernel domain layer.

Holds the clock abstraction and cron evaluation; no ORM, database or file
I/O dependencies.
"""

from chunkflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from chunkflow_kernel.domain.schedule import (
    CronSpec,
    matches_cron,
    next_fire_time,
    parse_cron,
    should_fire,
)

__all__ = [
    "Clock",
    "CronSpec",
    "DeterministicClock",
    "SystemClock",
    "matches_cron",
    "next_fire_time",
    "parse_cron",
    "should_fire",
]
