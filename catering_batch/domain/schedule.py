"""
Pure cron evaluation for job triggers.

Contract:
    ``parse_cron``, ``matches_cron``, ``should_fire`` and
    ``compute_next_run`` are PURE -- no I/O, no clock reads.  The scheduler
    passes the current time in.

Cron fields: ``minute hour day_of_month month day_of_week`` with ``*``,
values, ranges (1-5), lists (1,3) and steps (*/5, 1-10/2).  Day of week
uses cron numbering (0=Sunday).  Times are evaluated in UTC.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from catering_kernel.exceptions import InvalidCronExpressionError


# =============================================================================
# CronSpec
# =============================================================================


@dataclass(frozen=True)
class CronSpec:
    """Parsed cron expression.  Each field is a frozenset of allowed values."""

    minutes: frozenset[int] = field(default_factory=lambda: frozenset(range(60)))
    hours: frozenset[int] = field(default_factory=lambda: frozenset(range(24)))
    days_of_month: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 32)))
    months: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 13)))
    days_of_week: frozenset[int] = field(default_factory=lambda: frozenset(range(7)))


def _parse_value(raw: str, min_val: int, max_val: int) -> int:
    value = int(raw)
    if value < min_val or value > max_val:
        raise ValueError(f"Value {value} outside range [{min_val}, {max_val}]")
    return value


def _parse_cron_field(field_str: str, min_val: int, max_val: int) -> frozenset[int]:
    """Parse one cron field into the set of values it allows.

    Raises:
        ValueError: If the field is malformed or a value is out of range.
    """
    values: set[int] = set()

    for part in field_str.split(","):
        part = part.strip()
        step = 1
        if "/" in part:
            part, step_str = part.split("/", 1)
            step = int(step_str)
            if step <= 0:
                raise ValueError(f"Step must be positive: {step}")

        if part == "*":
            start, end = min_val, max_val
        elif "-" in part:
            s, e = part.split("-", 1)
            start, end = _parse_value(s, min_val, max_val), _parse_value(e, min_val, max_val)
            if start > end:
                raise ValueError(f"Range start > end: {start}-{end}")
        else:
            start = _parse_value(part, min_val, max_val)
            end = max_val if step > 1 else start

        values.update(range(start, end + 1, step))

    if not values:
        raise ValueError(f"Field '{field_str}' matches no values")
    return frozenset(values)


def parse_cron(expression: str) -> CronSpec:
    """Parse a 5-field cron expression.

    Raises:
        InvalidCronExpressionError: If the expression is malformed.
    """
    parts = expression.strip().split()
    if len(parts) != 5:
        raise InvalidCronExpressionError(
            expression, f"expected 5 fields, got {len(parts)}"
        )
    try:
        return CronSpec(
            minutes=_parse_cron_field(parts[0], 0, 59),
            hours=_parse_cron_field(parts[1], 0, 23),
            days_of_month=_parse_cron_field(parts[2], 1, 31),
            months=_parse_cron_field(parts[3], 1, 12),
            days_of_week=_parse_cron_field(parts[4], 0, 6),
        )
    except ValueError as exc:
        raise InvalidCronExpressionError(expression, str(exc)) from exc


def _to_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc)


def matches_cron(spec: CronSpec, dt: datetime) -> bool:
    """Check whether ``dt`` (UTC) matches ``spec`` to the minute."""
    dt = _to_utc(dt)
    # Python weekday(): 0=Monday; cron: 0=Sunday
    cron_dow = (dt.weekday() + 1) % 7
    return (
        dt.minute in spec.minutes
        and dt.hour in spec.hours
        and dt.day in spec.days_of_month
        and dt.month in spec.months
        and cron_dow in spec.days_of_week
    )


# =============================================================================
# Trigger evaluation
# =============================================================================


def should_fire(next_run_at: datetime | None, as_of: datetime) -> bool:
    """A trigger fires once ``as_of`` reaches its next run time."""
    if next_run_at is None:
        return False
    return as_of >= next_run_at


def compute_next_run(spec: CronSpec, after: datetime) -> datetime:
    """First minute strictly after ``after`` that matches ``spec``.

    Scans minute by minute up to 366 days.

    Raises:
        ValueError: If nothing matches within 366 days (e.g. Feb 31).
    """
    candidate = after.replace(second=0, microsecond=0) + timedelta(minutes=1)
    max_iterations = 366 * 24 * 60

    for _ in range(max_iterations):
        if matches_cron(spec, candidate):
            return candidate
        candidate += timedelta(minutes=1)

    raise ValueError(f"No cron match found within 366 days after {after}")
