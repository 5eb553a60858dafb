"""
Pure cron evaluation functions.

Used by config validation and by the batch scheduler trigger.

Contract:
    ``parse_cron()``, ``matches_cron()``, ``next_fire_time()`` and
    ``should_fire()`` are PURE -- no I/O, no clock reads.  The scheduler
    passes in the time it read from its injected clock.

Accepted formats:
    5 fields: ``minute hour day_of_month month day_of_week`` (fires at second 0)
    6 fields: ``second minute hour day_of_month month day_of_week``
              (seconds first, e.g. ``0 * * * * *`` fires every minute)

    ``?`` is treated as ``*``.  Day-of-week 7 is an alias for Sunday (0).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from chunkflow_kernel.exceptions import InvalidCronExpressionError


# =============================================================================
# CronSpec (lightweight cron parser)
# =============================================================================


@dataclass(frozen=True)
class CronSpec:
    """Parsed cron expression.

    Each field is a frozenset of valid integer values.
    Supports: *, ?, values, lists (1,2), ranges (1-5), steps (*/5, 1-10/2).
    """

    seconds: frozenset[int] = field(default_factory=lambda: frozenset({0}))
    minutes: frozenset[int] = field(default_factory=lambda: frozenset(range(60)))
    hours: frozenset[int] = field(default_factory=lambda: frozenset(range(24)))
    days_of_month: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 32)))
    months: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 13)))
    days_of_week: frozenset[int] = field(default_factory=lambda: frozenset(range(7)))


def _parse_cron_field(field_str: str, min_val: int, max_val: int) -> frozenset[int]:
    """Parse a single cron field into a frozenset of valid values.

    Raises:
        ValueError: If the field is syntactically invalid or values out of range.
    """
    values: set[int] = set()

    for part in field_str.split(","):
        part = part.strip()
        if part == "?":
            part = "*"

        if "/" in part:
            range_part, step_str = part.split("/", 1)
            step = int(step_str)
            if step <= 0:
                raise ValueError(f"Step must be positive: {step}")

            if range_part == "*":
                start, end = min_val, max_val
            elif "-" in range_part:
                s, e = range_part.split("-", 1)
                start, end = int(s), int(e)
            else:
                start = int(range_part)
                end = max_val

            for v in range(start, end + 1, step):
                if min_val <= v <= max_val:
                    values.add(v)

        elif part == "*":
            values.update(range(min_val, max_val + 1))

        elif "-" in part:
            s, e = part.split("-", 1)
            start, end = int(s), int(e)
            if start > end:
                raise ValueError(f"Range start > end: {start}-{end}")
            for v in range(start, end + 1):
                if min_val <= v <= max_val:
                    values.add(v)

        else:
            v = int(part)
            if v < min_val or v > max_val:
                raise ValueError(
                    f"Value {v} outside range [{min_val}, {max_val}]"
                )
            values.add(v)

    if not values:
        raise ValueError(f"Field '{field_str}' matches no values")
    return frozenset(values)


def parse_cron(expression: str) -> CronSpec:
    """Parse a 5- or 6-field cron expression into a CronSpec.

    Raises:
        InvalidCronExpressionError: If expression is malformed.
    """
    parts = expression.strip().split()
    if len(parts) == 5:
        parts = ["0", *parts]
    if len(parts) != 6:
        raise InvalidCronExpressionError(
            expression, f"expected 5 or 6 fields, got {len(parts)}",
        )

    try:
        days_of_week = _parse_cron_field(parts[5], 0, 7)
        return CronSpec(
            seconds=_parse_cron_field(parts[0], 0, 59),
            minutes=_parse_cron_field(parts[1], 0, 59),
            hours=_parse_cron_field(parts[2], 0, 23),
            days_of_month=_parse_cron_field(parts[3], 1, 31),
            months=_parse_cron_field(parts[4], 1, 12),
            days_of_week=frozenset(d % 7 for d in days_of_week),
        )
    except ValueError as exc:
        raise InvalidCronExpressionError(expression, str(exc)) from exc


def _matches_minute(spec: CronSpec, dt: datetime) -> bool:
    # Python weekday(): 0=Mon; cron: 0=Sun
    cron_dow = (dt.weekday() + 1) % 7
    return (
        dt.minute in spec.minutes
        and dt.hour in spec.hours
        and dt.day in spec.days_of_month
        and dt.month in spec.months
        and cron_dow in spec.days_of_week
    )


def matches_cron(spec: CronSpec, dt: datetime) -> bool:
    """Check if a datetime (to the second) matches a cron spec."""
    return dt.second in spec.seconds and _matches_minute(spec, dt)


def next_fire_time(spec: CronSpec, after: datetime) -> datetime:
    """Find the first datetime strictly after ``after`` that matches the spec.

    Scans minute-by-minute up to 366 days.

    Raises:
        ValueError: If no match found within 366 days.
    """
    earliest = after.replace(microsecond=0) + timedelta(seconds=1)
    candidate = earliest.replace(second=0)
    max_iterations = 366 * 24 * 60
    ordered_seconds = sorted(spec.seconds)

    for _ in range(max_iterations):
        if _matches_minute(spec, candidate):
            for second in ordered_seconds:
                fire_at = candidate.replace(second=second)
                if fire_at >= earliest:
                    return fire_at
        candidate += timedelta(minutes=1)

    raise ValueError(f"No cron match found within 366 days after {after}")


def should_fire(next_fire_at: datetime | None, as_of: datetime) -> bool:
    """True once the clock has reached the scheduled fire time."""
    return next_fire_at is not None and as_of >= next_fire_at
