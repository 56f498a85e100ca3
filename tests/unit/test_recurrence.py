"""Tests for recurrence pattern matching."""

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from taskhub.core.recurrence import (
    describe_pattern,
    localize,
    occurrence_due_date,
    occurs_on,
    parse_due_date,
    pattern_to_cron,
    resolve_timezone,
)
from taskhub.domain.task import RecurringPattern


# 2024-01-03 is a Wednesday
WEDNESDAY_ANCHOR = datetime(2024, 1, 3, 9, 30, tzinfo=UTC)


@pytest.mark.unit
def test_daily_matches_every_day():
    """Test a daily template recurs on any day."""
    anchor = datetime(2024, 1, 1, 17, 0, tzinfo=UTC)
    start = date(2024, 2, 25)

    assert all(occurs_on(RecurringPattern.DAILY, anchor, start + timedelta(days=n)) for n in range(10))


@pytest.mark.unit
def test_weekly_matches_anchor_weekday_only():
    """Test a weekly template recurs only on the due date's weekday."""
    assert occurs_on(RecurringPattern.WEEKLY, WEDNESDAY_ANCHOR, date(2024, 3, 6))
    assert not occurs_on(RecurringPattern.WEEKLY, WEDNESDAY_ANCHOR, date(2024, 3, 7))
    assert not occurs_on(RecurringPattern.WEEKLY, WEDNESDAY_ANCHOR, date(2024, 3, 5))


@pytest.mark.unit
def test_weekly_sunday_anchor():
    """Test Sunday maps to CRON weekday 0."""
    sunday = datetime(2024, 1, 7, tzinfo=UTC)

    assert pattern_to_cron(RecurringPattern.WEEKLY, sunday) == "0 0 * * 0"
    assert occurs_on(RecurringPattern.WEEKLY, sunday, date(2024, 3, 10))


@pytest.mark.unit
def test_monthly_matches_anchor_day_of_month():
    """Test a monthly template recurs on the due date's day of month."""
    anchor = datetime(2024, 1, 15, 8, 0, tzinfo=UTC)

    assert occurs_on(RecurringPattern.MONTHLY, anchor, date(2024, 3, 15))
    assert not occurs_on(RecurringPattern.MONTHLY, anchor, date(2024, 3, 16))


@pytest.mark.unit
def test_monthly_on_31st_skips_short_months():
    """Test a template anchored on the 31st does not fire in a 30-day month."""
    anchor = datetime(2024, 1, 31, tzinfo=UTC)
    april = [date(2024, 4, day) for day in range(1, 31)]

    assert not any(occurs_on(RecurringPattern.MONTHLY, anchor, day) for day in april)
    assert occurs_on(RecurringPattern.MONTHLY, anchor, date(2024, 3, 31))


@pytest.mark.unit
@pytest.mark.parametrize(
    ("pattern", "expected"),
    [
        (RecurringPattern.DAILY, "0 0 * * *"),
        (RecurringPattern.WEEKLY, "0 0 * * 3"),
        (RecurringPattern.MONTHLY, "0 0 3 * *"),
    ],
)
def test_pattern_to_cron(pattern, expected):
    """Test patterns render as day-granular CRON expressions."""
    assert pattern_to_cron(pattern, WEDNESDAY_ANCHOR) == expected


@pytest.mark.unit
def test_occurrence_keeps_time_of_day():
    """Test the instance is due on the run date at the template's time of day."""
    anchor = parse_due_date("2024-01-01T17:00:00Z")

    due = occurrence_due_date(anchor, date(2024, 3, 5))

    assert due == datetime(2024, 3, 5, 17, 0, tzinfo=UTC)


@pytest.mark.unit
def test_occurrence_keeps_offset():
    """Test a non-UTC offset on the template carries over."""
    offset = timezone(timedelta(hours=2))
    anchor = datetime(2024, 1, 1, 9, 15, tzinfo=offset)

    due = occurrence_due_date(anchor, date(2024, 3, 5))

    assert due.isoformat() == "2024-03-05T09:15:00+02:00"


@pytest.mark.unit
def test_parse_due_date_accepts_z_suffix_and_dates():
    """Test stored due dates parse in the formats clients send."""
    assert parse_due_date("2024-01-01T17:00:00Z") == datetime(2024, 1, 1, 17, 0, tzinfo=UTC)
    assert parse_due_date("2024-01-01") == datetime(2024, 1, 1)


@pytest.mark.unit
@pytest.mark.parametrize("value", ["", "   ", "tomorrow", None])
def test_parse_due_date_rejects_garbage(value):
    """Test malformed due dates raise ValueError."""
    with pytest.raises(ValueError):
        parse_due_date(value)


@pytest.mark.unit
def test_describe_pattern():
    """Test human-readable pattern descriptions."""
    assert describe_pattern(RecurringPattern.DAILY, WEDNESDAY_ANCHOR) == "daily"
    assert describe_pattern(RecurringPattern.WEEKLY, WEDNESDAY_ANCHOR) == "every Wednesday"
    assert describe_pattern(RecurringPattern.MONTHLY, datetime(2024, 1, 31)) == "monthly on the 31st"
    assert describe_pattern(RecurringPattern.MONTHLY, datetime(2024, 1, 22)) == "monthly on the 22nd"
    assert describe_pattern(RecurringPattern.MONTHLY, datetime(2024, 1, 11)) == "monthly on the 11th"


@pytest.mark.unit
def test_localize_moves_weekday_into_zone():
    """Test a late-evening UTC due date lands on the next day east of UTC."""
    tokyo = timezone(timedelta(hours=9))

    local = localize(datetime(2024, 1, 3, 23, 30, tzinfo=UTC), tokyo)

    assert (local.weekday(), local.hour, local.minute) == (3, 8, 30)
    assert occurs_on(RecurringPattern.WEEKLY, local, date(2024, 1, 11))
    assert not occurs_on(RecurringPattern.WEEKLY, local, date(2024, 1, 10))


@pytest.mark.unit
def test_localize_naive_values_are_already_local():
    """Test a naive due date keeps its wall-clock time in the target zone."""
    tokyo = timezone(timedelta(hours=9))

    assert localize(datetime(2024, 1, 3, 9, 0), tokyo) == datetime(2024, 1, 3, 9, 0, tzinfo=tokyo)
    assert localize(datetime(2024, 1, 3, 9, 0), None) == datetime(2024, 1, 3, 9, 0)


@pytest.mark.unit
def test_localize_to_host_time_is_naive():
    """Test host-local conversion yields naive wall time and due dates get the host offset."""
    anchor = datetime(2024, 1, 1, 17, 0, tzinfo=UTC)

    local = localize(anchor, None)
    due = occurrence_due_date(local, date(2024, 3, 5))

    assert local.tzinfo is None
    assert local == anchor.astimezone().replace(tzinfo=None)
    assert due.tzinfo is not None
    assert (due.date(), due.time()) == (date(2024, 3, 5), local.time())


@pytest.mark.unit
def test_resolve_timezone_defaults_to_host_time():
    """Test no configured zone means host local time."""
    assert resolve_timezone(None) is None
    assert resolve_timezone("") is None
