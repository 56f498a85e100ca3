"""Recurrence utilities for recurring task templates.

Occurrence days and times of day are evaluated in one local zone, so a due
date stored in UTC still recurs on the weekday the user saw when creating it.
A zone of ``None`` means the host's local time, DST rules included.
"""

from datetime import date, datetime, time, tzinfo
from zoneinfo import ZoneInfo

from croniter import croniter

from taskhub.domain.task import RecurringPattern


_WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def resolve_timezone(name: str | None = None) -> tzinfo | None:
    """Zone recurrence is evaluated in: ``name`` if given, else None for host local time."""
    return ZoneInfo(name) if name else None


def localize(anchor: datetime, zone: tzinfo | None) -> datetime:
    """Express a due date as wall-clock time in ``zone``.

    Naive values are taken to already be local. With ``zone=None`` the result
    is naive host-local time, so each occurrence later gets the UTC offset in
    force on its own date.
    """
    if zone is None:
        return anchor.astimezone().replace(tzinfo=None) if anchor.tzinfo else anchor
    if anchor.tzinfo is None:
        return anchor.replace(tzinfo=zone)
    return anchor.astimezone(zone)


def local_today(zone: tzinfo | None) -> date:
    return datetime.now(zone).date()


def parse_due_date(value: str | datetime) -> datetime:
    """Parse a stored due date into a datetime.

    Raises:
        ValueError: If the value is not an ISO 8601 date or datetime
    """
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        msg = f"Invalid due date: {value!r}"
        raise ValueError(msg)
    return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))


def pattern_to_cron(pattern: RecurringPattern, anchor: datetime) -> str:
    """Render a recurring pattern as a day-granular CRON expression.

    The anchor is the template's due date: weekly templates recur on its
    weekday, monthly templates on its day of month.
    """
    if pattern == RecurringPattern.DAILY:
        return "0 0 * * *"
    if pattern == RecurringPattern.WEEKLY:
        # CRON counts weekdays from Sunday=0
        return f"0 0 * * {(anchor.weekday() + 1) % 7}"
    if pattern == RecurringPattern.MONTHLY:
        return f"0 0 {anchor.day} * *"
    msg = f"Unsupported recurrence pattern: {pattern}"
    raise ValueError(msg)


def occurs_on(pattern: RecurringPattern, anchor: datetime, day: date) -> bool:
    """Return True if a template with this pattern and due date recurs on ``day``.

    Monthly templates anchored on the 29th-31st do not fire in months that
    lack that day.
    """
    return croniter.match(pattern_to_cron(pattern, anchor), datetime.combine(day, time.min))


def occurrence_due_date(anchor: datetime, day: date) -> datetime:
    """Due date of the instance created on ``day``: that date at the anchor's time of day.

    A naive anchor is host-local wall time; the result is made aware with the
    host offset for ``day``.
    """
    if anchor.tzinfo is None:
        return datetime.combine(day, anchor.time()).astimezone()
    return datetime.combine(day, anchor.timetz())


def describe_pattern(pattern: RecurringPattern, anchor: datetime) -> str:
    """Human-readable description, e.g. "every Wednesday" or "monthly on the 31st"."""
    if pattern == RecurringPattern.DAILY:
        return "daily"
    if pattern == RecurringPattern.WEEKLY:
        return f"every {_WEEKDAY_NAMES[anchor.weekday()]}"

    dom = anchor.day
    suffix = "th"
    if dom in (1, 21, 31):
        suffix = "st"
    elif dom in (2, 22):
        suffix = "nd"
    elif dom in (3, 23):
        suffix = "rd"
    return f"monthly on the {dom}{suffix}"
