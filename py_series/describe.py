"""Human-readable rule descriptions for listings and series pages."""

from __future__ import annotations

from .rule import DayOfMonth, Frequency, RecurrenceRule, WeekdayOfMonth

DAY_NAMES = [
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
]

FREQUENCY_LABELS = {
    Frequency.WEEKLY: "Weekly",
    Frequency.BIWEEKLY: "Every 2 weeks",
    Frequency.MONTHLY: "Monthly",
}

OCCURRENCE_LABELS = {
    1: "1st",
    2: "2nd",
    3: "3rd",
    4: "4th",
    5: "5th",
    -1: "Last",
}


def ordinal(n: int) -> str:
    """1 -> "1st", 12 -> "12th", 22 -> "22nd"."""
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def describe(rule: RecurrenceRule) -> str:
    """Render a rule for display.

    Examples:
        "Every Monday, Wednesday", "Every other week", "Monthly on the 15th",
        "Monthly on the 2nd Tuesday", "Monthly on the Last Friday"

    The output is for people only and is not meant to be parsed back.
    """
    if rule.frequency.is_weekly:
        prefix = "Every" if rule.frequency is Frequency.WEEKLY else "Every other"
        if rule.days_of_week:
            days = ", ".join(DAY_NAMES[d] for d in rule.days_of_week)
            return f"{prefix} {days}"
        return f"{prefix} week"

    pattern = rule.monthly_pattern
    if isinstance(pattern, DayOfMonth):
        return f"Monthly on the {ordinal(pattern.day)}"
    if isinstance(pattern, WeekdayOfMonth):
        return f"Monthly on the {OCCURRENCE_LABELS[pattern.occurrence]} {DAY_NAMES[pattern.weekday]}"

    return FREQUENCY_LABELS[rule.frequency]


def describe_bounds(
    start_date: str, end_date: str | None = None, max_occurrences: int | None = None
) -> str:
    """Describe where a series starts and ends.

    >>> describe_bounds("2026-01-06", max_occurrences=10)
    'Starting 2026-01-06, 10 times'
    """
    text = f"Starting {start_date}"
    if end_date:
        text += f", until {end_date}"
    elif max_occurrences:
        text += ", once" if max_occurrences == 1 else f", {max_occurrences} times"
    return text
