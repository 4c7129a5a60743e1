"""Calendar arithmetic on plain calendar dates.

Every function here works on a ``(year, month, day)`` triple or its canonical
zero-padded ``YYYY-MM-DD`` string. Nothing in this module touches an instant,
a clock or a timezone: :class:`datetime.date` is used internally purely as a
calculation device and never escapes except through :func:`to_date`, which
exists for the rrule expansion and the iCalendar and HTTP edges.

All date mutation in the package goes through these helpers.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from .internal import DateError

_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

# Weekday indices used throughout the package: 0=Sunday .. 6=Saturday
SUNDAY = 0
SATURDAY = 6


def days_in_month(year: int, month: int) -> int:
    """Number of days in a month, leap years included."""
    if not 1 <= month <= 12:
        raise DateError(f"month out of range: {month}")
    return calendar.monthrange(year, month)[1]


def weekday_of(year: int, month: int, day: int) -> int:
    """Weekday of a calendar date, 0=Sunday .. 6=Saturday."""
    # isoweekday() is 1=Monday .. 7=Sunday
    return date(year, month, day).isoweekday() % 7


def parse_date(value: str) -> tuple[int, int, int]:
    """Parse a ``YYYY-MM-DD`` string into a ``(year, month, day)`` triple.

    Raises:
        DateError: If the string is not canonical or names an impossible day
    """
    if not isinstance(value, str):
        raise DateError(f"expected a YYYY-MM-DD string, got {type(value).__name__}")

    match = _DATE_RE.match(value)
    if match is None:
        raise DateError(f"invalid date {value!r}: expected YYYY-MM-DD")

    year, month, day = (int(part) for part in match.groups())
    if year < 1 or not 1 <= month <= 12 or not 1 <= day <= days_in_month(year, month):
        raise DateError(f"invalid date {value!r}: no such calendar day")
    return year, month, day


def format_date(year: int, month: int, day: int) -> str:
    """Format a triple as ``YYYY-MM-DD``."""
    return f"{year:04d}-{month:02d}-{day:02d}"


def to_date(value: str) -> date:
    """Convert a date string to :class:`datetime.date`."""
    return date(*parse_date(value))


def from_date(value: date) -> str:
    """Convert a :class:`datetime.date` (or datetime) to its date string."""
    return format_date(value.year, value.month, value.day)


def is_valid_date(value: str) -> bool:
    """Check whether a string is a canonical calendar date."""
    try:
        parse_date(value)
    except DateError:
        return False
    return True


def add_days(value: str, days: int) -> str:
    """Shift a date by a number of days (may be negative)."""
    return from_date(to_date(value) + timedelta(days=days))


def add_weeks(value: str, weeks: int) -> str:
    """Shift a date by a number of weeks (may be negative)."""
    return from_date(to_date(value) + timedelta(weeks=weeks))


def add_months(value: str, months: int) -> str:
    """Shift a date by calendar months, clamping the day to the target month.

    Example:
        >>> add_months("2025-01-31", 1)
        '2025-02-28'
    """
    return from_date(to_date(value) + relativedelta(months=months))


def compare(a: str, b: str) -> int:
    """Compare two date strings, returning -1, 0 or 1.

    Canonical dates are zero-padded, so lexical order is calendar order.
    """
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def days_between(a: str, b: str) -> int:
    """Number of days from ``a`` to ``b`` (negative if ``b`` is earlier)."""
    return (to_date(b) - to_date(a)).days


def weekday_of_date(value: str) -> int:
    """Weekday of a date string, 0=Sunday .. 6=Saturday."""
    return weekday_of(*parse_date(value))


def start_of_week(value: str) -> str:
    """The Sunday on or before ``value``."""
    return add_days(value, -weekday_of_date(value))


def start_of_month(value: str) -> str:
    """The first day of the month containing ``value``."""
    year, month, _ = parse_date(value)
    return format_date(year, month, 1)
