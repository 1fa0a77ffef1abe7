"""Date helpers for recurrence calculations."""
import calendar
from datetime import date, datetime, timedelta
from typing import Optional, Union

import pytz

from planner_recurrence.errors import ConfigError

DateLike = Union[date, datetime, str]


def to_date(value: Optional[DateLike]) -> Optional[date]:
    """Normalize a date, datetime or ISO string to a calendar date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        if not value:
            return None
        return datetime.fromisoformat(value.replace('Z', '+00:00')).date()
    raise TypeError(f"Cannot convert {type(value).__name__} to date")


def to_midnight(value: date) -> datetime:
    """Naive datetime at midnight, the stored form of scheduled dates."""
    return datetime(value.year, value.month, value.day)


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching stored timestamps."""
    return datetime.now(pytz.utc).replace(tzinfo=None)


def get_timezone(name: str):
    """Resolve a pytz timezone, raising ConfigError for unknown names."""
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        raise ConfigError(f"Unknown timezone: {name}", details={"timezone": name})


def today_in(tz_name: str, now: Optional[datetime] = None) -> date:
    """
    Calendar date of "now" in the given timezone.

    Naive `now` values are treated as UTC.
    """
    tz = get_timezone(tz_name)
    now = now or utcnow()
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    return now.astimezone(tz).date()


def js_weekday(value: date) -> int:
    """Weekday index with 0=Sunday .. 6=Saturday."""
    return (value.weekday() + 1) % 7


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(value: date, months: int) -> date:
    """
    Shift a date by whole months.

    A day that does not exist in the target month is clamped to that
    month's last day (Jan 31 + 1 month = Feb 28, or Feb 29 in leap years).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, days_in_month(year, month))
    return date(year, month, day)


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date, clamping `day` to the month's length."""
    return date(year, month, min(day, days_in_month(year, month)))


def nth_weekday_of_month(year: int, month: int, n: int, weekday: int) -> Optional[date]:
    """
    The n-th given weekday (0=Sunday) of a month; n=-1 means the last one.

    Returns None when the month has no such day (e.g. a 5th Monday).
    """
    last_day = days_in_month(year, month)
    if n == -1:
        cursor = date(year, month, last_day)
        while js_weekday(cursor) != weekday:
            cursor -= timedelta(days=1)
        return cursor

    first = date(year, month, 1)
    offset = (weekday - js_weekday(first)) % 7
    day = 1 + offset + (n - 1) * 7
    if day > last_day:
        return None
    return date(year, month, day)


def months_between(start: date, end: date) -> int:
    """Whole calendar months from start's month to end's month."""
    return (end.year - start.year) * 12 + (end.month - start.month)
