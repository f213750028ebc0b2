"""Date and time helpers for the class calendar.

Pure functions only. Dates are ``datetime.date`` or ``YYYY-MM-DD`` strings,
times of day are ``HH:MM`` strings, durations are minutes. Weekdays use the
school's convention 0 = Sunday .. 6 = Saturday, which differs from
``date.weekday()`` (0 = Monday).
"""

import re
from collections.abc import Iterator
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

MINUTES_PER_DAY = 24 * 60


def to_iso_date(year: int, month: int, day: int) -> str:
    """Format a calendar date as ``YYYY-MM-DD`` (validates the date)."""
    return date(year, month, day).isoformat()


def as_date(value: date | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def weekday_of(value: date | str) -> int:
    """Day of week with 0 = Sunday."""
    return (as_date(value).weekday() + 1) % 7


def minutes_of_day(hhmm: str) -> int:
    """Parse ``HH:MM`` into minutes since midnight.

    Raises:
        ValueError: If the string is not a valid 24h time.
    """
    match = _HHMM.match(hhmm or "")
    if match is None:
        raise ValueError(f"Invalid time {hhmm!r}, expected HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def is_valid_time(hhmm: str) -> bool:
    return _HHMM.match(hhmm or "") is not None


def intervals_overlap(start_a: int, dur_a: int, start_b: int, dur_b: int) -> bool:
    """Half-open interval overlap; touching endpoints do not overlap."""
    return start_a < start_b + dur_b and start_b < start_a + dur_a


def slots_overlap(start_a: str, dur_a: int, start_b: str, dur_b: int) -> bool:
    """intervals_overlap() for ``HH:MM`` start times."""
    return intervals_overlap(
        minutes_of_day(start_a), dur_a, minutes_of_day(start_b), dur_b
    )


def format_range(start: str, duration: int) -> str:
    """Render ``HH:MM - HH:MM``.

    The end hour wraps modulo 24 without rolling the date, so a class at
    23:30 lasting 60 minutes renders as ``23:30 - 00:30``.
    """
    total = minutes_of_day(start) + duration
    end_hour = (total // 60) % 24
    end_minute = total % 60
    return f"{start} - {end_hour:02d}:{end_minute:02d}"


def format_date_br(value: date | str) -> str:
    """``2026-10-19`` -> ``19/10/2026`` (as shown to students)."""
    return as_date(value).strftime("%d/%m/%Y")


def session_key(value: date | str, start_time: str) -> str:
    """Attendance key for one class: ``YYYY-MM-DD-HHMM``."""
    minutes_of_day(start_time)
    return f"{as_date(value).isoformat()}-{start_time.replace(':', '')}"


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every date in ``[start, end]``; nothing when start > end."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    first = date(year, month, 1)
    if month == 12:
        last = date(year + 1, 1, 1) - timedelta(days=1)
    else:
        last = date(year, month + 1, 1) - timedelta(days=1)
    return first, last


def local_now(tz: ZoneInfo) -> datetime:
    return datetime.now(tz)


def local_today(tz: ZoneInfo) -> date:
    return local_now(tz).date()
