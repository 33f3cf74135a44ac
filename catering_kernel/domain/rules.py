"""
Pure domain rules for agreements and work items.

Contract:
    Every function here is PURE -- no I/O, no clock reads.  "Now" is always
    a parameter.  These rules are the single source of truth for deadline
    arithmetic and fallback eligibility: the work item entity and the
    repository's eligibility query both delegate here.

Time convention:
    A service date is a calendar date with no time of day.  For deadline
    arithmetic it is anchored at 00:00 UTC.  Naive datetimes are treated as
    UTC (SQLite drops tzinfo on round-trip).
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import date, datetime, time, timedelta, timezone

from catering_kernel.domain.types import ISO_WEEKDAYS, WorkItemStatus


# =============================================================================
# Dates
# =============================================================================


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to an aware UTC datetime."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_midnight(service_date: date) -> datetime:
    """Return 00:00 UTC on ``service_date``."""
    return datetime.combine(service_date, time.min, tzinfo=timezone.utc)


def iso_weekday(value: date) -> int:
    """ISO 8601 weekday number: Monday=1 .. Sunday=7."""
    return value.isoweekday()


def iter_dates(date_from: date, date_to: date) -> Iterator[date]:
    """Yield every calendar date in ``[date_from, date_to]`` inclusive."""
    current = date_from
    while current <= date_to:
        yield current
        current += timedelta(days=1)


def validate_weekdays(weekdays: Iterable[int]) -> frozenset[int]:
    """Return ``weekdays`` as a frozenset, rejecting values outside 1..7.

    Raises:
        ValueError: If any weekday is not an ISO weekday number.
    """
    days = frozenset(int(d) for d in weekdays)
    invalid = days - ISO_WEEKDAYS
    if invalid:
        raise ValueError(
            f"Weekdays must be ISO numbers 1-7 (Monday=1), got {sorted(invalid)}"
        )
    return days


def service_dates_in_range(
    date_from: date,
    date_to: date,
    weekdays: Iterable[int],
) -> tuple[date, ...]:
    """All dates in ``[date_from, date_to]`` whose ISO weekday is in ``weekdays``."""
    allowed = frozenset(weekdays)
    return tuple(d for d in iter_dates(date_from, date_to) if iso_weekday(d) in allowed)


# =============================================================================
# Notice period
# =============================================================================


def notice_deadline(service_date: date, notice_period_hours: int) -> datetime:
    """Last instant at which the expected quantity may still be confirmed.

    Hours are subtracted from the service date's midnight timestamp; the
    result is not truncated to a calendar day.
    """
    return utc_midnight(service_date) - timedelta(hours=notice_period_hours)


def is_within_notice_period(
    service_date: date,
    notice_period_hours: int,
    now: datetime,
) -> bool:
    """True while ``now <= deadline``.  The deadline instant itself is allowed."""
    return as_utc(now) <= notice_deadline(service_date, notice_period_hours)


def hours_until_service(service_date: date, now: datetime) -> float:
    return (utc_midnight(service_date) - as_utc(now)).total_seconds() / 3600


# =============================================================================
# Quantities
# =============================================================================


def is_valid_quantity_range(minimum: int, maximum: int) -> bool:
    return 0 <= minimum <= maximum


def is_quantity_in_range(quantity: int, minimum: int, maximum: int) -> bool:
    return minimum <= quantity <= maximum


# =============================================================================
# Fallback eligibility
# =============================================================================


def is_eligible_for_fallback(
    expected_quantity: int | None,
    expected_confirmed_at: datetime | None,
    status: WorkItemStatus,
    service_date: date,
    notice_period_hours: int,
    now: datetime,
) -> bool:
    """Whether the notice deadline passed without an expected quantity.

    eligible <=> expected_quantity is None
                 and status != CONFIRMED
                 and now > service_date - notice_period_hours

    ``expected_confirmed_at`` is part of the signature so callers pass the
    full confirmation state; the quantity is what decides eligibility.
    """
    if expected_quantity is not None:
        return False
    if WorkItemStatus(status) == WorkItemStatus.CONFIRMED:
        return False
    return not is_within_notice_period(service_date, notice_period_hours, now)
