"""Shared time helpers used across the scheduler."""

from datetime import date, datetime, time, timedelta, timezone
from typing import Union

import pytz

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def parse_hhmm(value: Union[str, time]) -> time:
    """Parse a ``HH:MM`` (or ``HH:MM:SS``) string into a time.

    Examples:
        >>> parse_hhmm("08:30")
        datetime.time(8, 30)
        >>> parse_hhmm("17:00:00")
        datetime.time(17, 0)
    """
    if isinstance(value, time):
        return value
    raw = value.strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(raw, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time {value!r}, expected HH:MM")


def parse_date(value: Union[str, date]) -> date:
    """Parse a ``YYYY-MM-DD`` string into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()


def to_minutes(value: Union[str, time]) -> int:
    """Minutes since midnight."""
    t = parse_hhmm(value)
    return t.hour * 60 + t.minute


def format_minutes(minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``.

    Examples:
        >>> format_minutes(510)
        '08:30'
    """
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def day_of_week(target: date) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday."""
    return (target.weekday() + 1) % 7


def get_tz(name: str) -> pytz.tzinfo.BaseTzInfo:
    """Resolve an IANA timezone name."""
    return pytz.timezone(name)


def local_to_utc(target: date, minutes: int, tz: pytz.tzinfo.BaseTzInfo) -> datetime:
    """Combine a local date and minutes since midnight into a UTC instant."""
    naive = datetime.combine(target, time.min) + timedelta(minutes=minutes)
    return tz.localize(naive).astimezone(timezone.utc)


def utc_to_local(instant: datetime, tz: pytz.tzinfo.BaseTzInfo) -> datetime:
    """Convert an aware instant to the given timezone."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(tz)


def local_day_bounds(target: date, tz: pytz.tzinfo.BaseTzInfo) -> tuple[datetime, datetime]:
    """UTC instants for the start of ``target`` and the start of the next day."""
    start = tz.localize(datetime.combine(target, time.min))
    end = tz.localize(datetime.combine(target + timedelta(days=1), time.min))
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
