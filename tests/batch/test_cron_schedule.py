"""
Cron parsing and trigger evaluation.
"""

from datetime import datetime, timedelta, timezone

import pytest

from catering_kernel.exceptions import InvalidCronExpressionError

from catering_batch.domain.schedule import (
    CronSpec,
    compute_next_run,
    matches_cron,
    parse_cron,
    should_fire,
)


# =============================================================================
# parse_cron
# =============================================================================


class TestParseCron:

    def test_every_minute(self):
        spec = parse_cron("* * * * *")
        assert spec == CronSpec()

    def test_values_ranges_lists_steps(self):
        spec = parse_cron("*/15 8-10 1,15 * 1-5/2")
        assert spec.minutes == frozenset({0, 15, 30, 45})
        assert spec.hours == frozenset({8, 9, 10})
        assert spec.days_of_month == frozenset({1, 15})
        assert spec.days_of_week == frozenset({1, 3, 5})

    def test_value_with_step_runs_to_max(self):
        assert parse_cron("50/5 * * * *").minutes == frozenset({50, 55})

    @pytest.mark.parametrize(
        "expression",
        [
            "* * * *",
            "* * * * * *",
            "60 * * * *",
            "* 24 * * *",
            "* * 0 * *",
            "* * * 13 *",
            "* * * * 7",
            "*/0 * * * *",
            "10-5 * * * *",
            "a * * * *",
        ],
    )
    def test_invalid_expressions(self, expression):
        with pytest.raises(InvalidCronExpressionError) as exc_info:
            parse_cron(expression)
        assert exc_info.value.expression == expression


# =============================================================================
# matches_cron
# =============================================================================


class TestMatchesCron:

    def test_daily_midnight(self):
        spec = parse_cron("0 0 * * *")
        assert matches_cron(spec, datetime(2024, 3, 6, 0, 0))
        assert not matches_cron(spec, datetime(2024, 3, 6, 0, 1))

    def test_day_of_week_sunday_is_zero(self):
        spec = parse_cron("0 9 * * 0")
        assert matches_cron(spec, datetime(2024, 3, 10, 9, 0))  # Sunday
        assert not matches_cron(spec, datetime(2024, 3, 11, 9, 0))  # Monday

    def test_aware_datetime_evaluated_in_utc(self):
        spec = parse_cron("0 0 * * *")
        plus_two = timezone(timedelta(hours=2))
        assert matches_cron(spec, datetime(2024, 3, 6, 2, 0, tzinfo=plus_two))


# =============================================================================
# Trigger evaluation
# =============================================================================


class TestShouldFire:

    def test_uninitialized_never_fires(self):
        assert not should_fire(None, datetime(2024, 3, 6))

    def test_fires_at_and_after_next_run(self):
        next_run = datetime(2024, 3, 6, 13, 0)
        assert not should_fire(next_run, next_run - timedelta(seconds=1))
        assert should_fire(next_run, next_run)
        assert should_fire(next_run, next_run + timedelta(hours=5))


class TestComputeNextRun:

    def test_next_hour(self):
        spec = parse_cron("0 * * * *")
        assert compute_next_run(spec, datetime(2024, 3, 6, 12, 0, 30)) == datetime(
            2024, 3, 6, 13, 0
        )

    def test_strictly_after(self):
        spec = parse_cron("0 0 * * *")
        assert compute_next_run(spec, datetime(2024, 3, 6, 0, 0)) == datetime(2024, 3, 7, 0, 0)

    def test_crosses_month_boundary(self):
        spec = parse_cron("0 0 1 * *")
        assert compute_next_run(spec, datetime(2024, 2, 15, 9, 0)) == datetime(2024, 3, 1, 0, 0)

    def test_keeps_timezone(self):
        spec = parse_cron("* * * * *")
        after = datetime(2024, 3, 6, 12, 0, 45, tzinfo=timezone.utc)
        assert compute_next_run(spec, after) == datetime(2024, 3, 6, 12, 1, tzinfo=timezone.utc)

    def test_impossible_date_raises(self):
        spec = parse_cron("0 0 31 2 *")
        with pytest.raises(ValueError, match="No cron match"):
            compute_next_run(spec, datetime(2024, 1, 1))
