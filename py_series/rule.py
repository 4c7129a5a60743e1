"""Recurrence rule model.

A rule says how often a series repeats and on which days:

- ``weekly`` / ``biweekly`` with a set of weekdays (0=Sunday .. 6=Saturday).
  An empty set means "the start date's own weekday".
- ``monthly`` with exactly one pattern: a day of the month, or the Nth
  weekday of the month (``occurrence=-1`` for the last one).

Rules are stored as a small JSON document, the same shape the series editor
submits::

    {"frequency": "weekly", "daysOfWeek": [2, 4]}
    {"frequency": "monthly", "monthlyPattern": {"type": "dayOfMonth", "day": 15}}
    {"frequency": "monthly",
     "monthlyPattern": {"type": "weekdayOfMonth", "weekday": 5, "occurrence": -1}}

Deserialization validates once; everything downstream can rely on a
well-formed :class:`RecurrenceRule`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from .internal import RuleError
from .internal import dates

LAST = -1
MAX_OCCURRENCE = 5


class Frequency(str, Enum):
    """How often a series repeats."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"

    @property
    def is_weekly(self) -> bool:
        """True for the week-stepped frequencies."""
        return self is not Frequency.MONTHLY

    @property
    def week_step(self) -> int:
        """Weeks between repetitions for week-stepped frequencies."""
        return 2 if self is Frequency.BIWEEKLY else 1


def _check_int(value: Any, name: str, low: int, high: int) -> int:
    # bool is an int subclass; true/false in JSON is never a valid day
    if isinstance(value, bool) or not isinstance(value, int):
        raise RuleError(f"{name} must be an integer, got {value!r}")
    if not low <= value <= high:
        raise RuleError(f"{name} must be between {low} and {high}, got {value}")
    return value


@dataclass(frozen=True)
class DayOfMonth:
    """Monthly on a fixed day, clamped to short months (31 -> Feb 28/29)."""

    day: int

    def __post_init__(self) -> None:
        _check_int(self.day, "day", 1, 31)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "dayOfMonth", "day": self.day}


@dataclass(frozen=True)
class WeekdayOfMonth:
    """Monthly on the Nth weekday (e.g. 2nd Tuesday) or the last one."""

    weekday: int
    occurrence: int

    def __post_init__(self) -> None:
        _check_int(self.weekday, "weekday", dates.SUNDAY, dates.SATURDAY)
        if self.occurrence != LAST:
            _check_int(self.occurrence, "occurrence", 1, MAX_OCCURRENCE)

    @property
    def is_last(self) -> bool:
        return self.occurrence == LAST

    def to_dict(self) -> dict[str, Any]:
        return {"type": "weekdayOfMonth", "weekday": self.weekday, "occurrence": self.occurrence}


MonthlyPattern = Union[DayOfMonth, WeekdayOfMonth]


@dataclass(frozen=True)
class RecurrenceRule:
    """Immutable recurrence rule.

    Attributes:
        frequency: Weekly, biweekly or monthly
        days_of_week: Weekdays for weekly/biweekly rules, sorted and unique
        monthly_pattern: Pattern for monthly rules, None otherwise
    """

    frequency: Frequency
    days_of_week: tuple[int, ...] = field(default_factory=tuple)
    monthly_pattern: MonthlyPattern | None = None

    def __post_init__(self) -> None:
        try:
            frequency = Frequency(self.frequency)
        except ValueError as e:
            raise RuleError(f"unknown frequency {self.frequency!r}") from e
        object.__setattr__(self, "frequency", frequency)

        days = tuple(
            sorted({_check_int(d, "day of week", dates.SUNDAY, dates.SATURDAY) for d in self.days_of_week})
        )
        object.__setattr__(self, "days_of_week", days)

        if frequency.is_weekly:
            if self.monthly_pattern is not None:
                raise RuleError(f"{frequency.value} rules do not take a monthly pattern")
        else:
            if self.monthly_pattern is None:
                raise RuleError("monthly rules need a monthly pattern")
            if not isinstance(self.monthly_pattern, (DayOfMonth, WeekdayOfMonth)):
                raise RuleError(f"invalid monthly pattern {self.monthly_pattern!r}")
            if days:
                raise RuleError("monthly rules do not take days of week")

    @classmethod
    def weekly(cls, *days_of_week: int) -> RecurrenceRule:
        return cls(Frequency.WEEKLY, tuple(days_of_week))

    @classmethod
    def biweekly(cls, *days_of_week: int) -> RecurrenceRule:
        return cls(Frequency.BIWEEKLY, tuple(days_of_week))

    @classmethod
    def monthly_on_day(cls, day: int) -> RecurrenceRule:
        return cls(Frequency.MONTHLY, monthly_pattern=DayOfMonth(day))

    @classmethod
    def monthly_on_weekday(cls, weekday: int, occurrence: int) -> RecurrenceRule:
        return cls(Frequency.MONTHLY, monthly_pattern=WeekdayOfMonth(weekday, occurrence))

    @classmethod
    def from_dict(cls, data: Any) -> RecurrenceRule:
        """Build a rule from its JSON document.

        Raises:
            RuleError: If the document is not a well-formed rule
        """
        if not isinstance(data, dict):
            raise RuleError("recurrence rule must be a JSON object")

        frequency = data.get("frequency")
        if not isinstance(frequency, str):
            raise RuleError("recurrence rule needs a frequency")

        days = data.get("daysOfWeek") or []
        if not isinstance(days, list):
            raise RuleError("daysOfWeek must be a list")

        pattern_data = data.get("monthlyPattern")
        pattern = _pattern_from_dict(pattern_data) if pattern_data is not None else None

        return cls(frequency, tuple(days), pattern)  # type: ignore[arg-type]

    @classmethod
    def from_json(cls, text: str) -> RecurrenceRule:
        """Parse a serialized rule.

        Raises:
            RuleError: If the text is not JSON or not a well-formed rule
        """
        try:
            data = json.loads(text)
        except (TypeError, json.JSONDecodeError) as e:
            raise RuleError(f"invalid recurrence rule JSON: {e}") from e
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"frequency": self.frequency.value}
        if self.frequency.is_weekly:
            data["daysOfWeek"] = list(self.days_of_week)
        elif self.monthly_pattern is not None:
            data["monthlyPattern"] = self.monthly_pattern.to_dict()
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def _pattern_from_dict(data: Any) -> MonthlyPattern:
    if not isinstance(data, dict):
        raise RuleError("monthlyPattern must be a JSON object")

    pattern_type = data.get("type")
    if pattern_type == "dayOfMonth":
        if "day" not in data:
            raise RuleError("dayOfMonth pattern needs a day")
        return DayOfMonth(data["day"])
    if pattern_type == "weekdayOfMonth":
        if "weekday" not in data or "occurrence" not in data:
            raise RuleError("weekdayOfMonth pattern needs weekday and occurrence")
        return WeekdayOfMonth(data["weekday"], data["occurrence"])
    raise RuleError(f"unknown monthly pattern type {pattern_type!r}")


def default_weekly_rule(start_date: str) -> RecurrenceRule:
    """Weekly on the start date's weekday."""
    return RecurrenceRule.weekly(dates.weekday_of_date(start_date))


def default_monthly_rule(start_date: str) -> RecurrenceRule:
    """Monthly on the start date's position in its month (e.g. "2nd Tuesday").

    A start in the last days of a month (day 29+) maps to the 4th occurrence so
    the rule exists in every month.
    """
    _, _, day = dates.parse_date(start_date)
    occurrence = min((day + 6) // 7, 4)
    return RecurrenceRule.monthly_on_weekday(dates.weekday_of_date(start_date), occurrence)
