"""Occurrence generation.

Expands a :class:`~py_series.rule.RecurrenceRule` with ``dateutil.rrule`` and
returns the concrete dates of a series, bounded by:

- the series' own end condition: an inclusive end date, or a maximum number
  of occurrences (never both),
- the generation horizon: how far ahead the caller wants dates right now,
- a hard iteration ceiling, so a pathological rule can never loop unbounded.

Output is always strictly ascending and free of duplicates. Stopping is exact:
the first date that crosses a boundary ends generation and is not included.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, time

from dateutil.rrule import FR, MO, MONTHLY, SA, SU, TH, TU, WE, WEEKLY, rrule

from .debug import engine_logger as logger
from .internal import RuleError
from .internal import dates
from .rule import DayOfMonth, RecurrenceRule, WeekdayOfMonth


# Ten years either way
MAX_WEEK_STEPS = 520
MAX_YEARS = 10

# dateutil weekdays, indexed 0=Sunday like the rule model
WEEKDAYS = (SU, MO, TU, WE, TH, FR, SA)

# Days a month always has; a later day of month must be clamped
SAFE_MONTH_DAYS = 28


@dataclass(frozen=True)
class GenerationBounds:
    """Where generation starts and where it must stop.

    Attributes:
        start_date: First date that may be produced (inclusive)
        generate_until: Horizon, last date that may be produced now (inclusive)
        end_date: Series end date (inclusive), exclusive with max_occurrences
        max_occurrences: Series length, exclusive with end_date
    """

    start_date: str
    generate_until: str
    end_date: str | None = None
    max_occurrences: int | None = None

    def __post_init__(self) -> None:
        dates.parse_date(self.start_date)
        dates.parse_date(self.generate_until)
        if self.end_date is not None:
            dates.parse_date(self.end_date)
        if self.end_date is not None and self.max_occurrences is not None:
            raise RuleError("end date and maximum occurrences are mutually exclusive")
        if self.max_occurrences is not None:
            if isinstance(self.max_occurrences, bool) or not isinstance(self.max_occurrences, int):
                raise RuleError(f"maximum occurrences must be an integer, got {self.max_occurrences!r}")
            if self.max_occurrences < 1:
                raise RuleError(f"maximum occurrences must be positive, got {self.max_occurrences}")

    @property
    def last_date(self) -> str:
        """The earlier of the end date and the horizon."""
        if self.end_date is not None and self.end_date < self.generate_until:
            return self.end_date
        return self.generate_until


def generate_occurrences(
    rule: RecurrenceRule,
    start_date: str,
    end_date: str | None = None,
    max_occurrences: int | None = None,
    *,
    generate_until: str,
) -> list[str]:
    """Generate the dates of a series.

    Args:
        rule: Recurrence rule
        start_date: First possible date (YYYY-MM-DD, inclusive)
        end_date: Optional series end date (inclusive)
        max_occurrences: Optional series length
        generate_until: Generation horizon (inclusive)

    Returns:
        Strictly ascending list of date strings

    Raises:
        RuleError: If both end conditions are given or max_occurrences < 1
        DateError: If a date string is malformed

    Example:
        >>> generate_occurrences(
        ...     RecurrenceRule.weekly(2, 4), "2026-01-06",
        ...     max_occurrences=4, generate_until="2026-12-31")
        ['2026-01-06', '2026-01-08', '2026-01-13', '2026-01-15']
    """
    bounds = GenerationBounds(
        start_date=start_date,
        generate_until=generate_until,
        end_date=end_date,
        max_occurrences=max_occurrences,
    )
    return list(iter_occurrences(rule, bounds))


def iter_occurrences(rule: RecurrenceRule, bounds: GenerationBounds) -> Iterator[str]:
    """Lazily yield the dates of a series within bounds."""
    last = bounds.last_date
    count = 0

    for occurrence in occurrence_rule(rule, bounds.start_date):
        candidate = dates.from_date(occurrence)
        if candidate > last:
            return
        if bounds.max_occurrences is not None and count >= bounds.max_occurrences:
            return
        yield candidate
        count += 1

    logger.debug(
        "iteration ceiling reached for %s rule starting %s after %d occurrences",
        rule.frequency.value,
        bounds.start_date,
        count,
    )


def occurrence_rule(rule: RecurrenceRule, start_date: str) -> rrule:
    """Build the dateutil rule that expands ``rule`` from ``start_date``.

    The rule is finite: it stops at the iteration ceiling (521 Sunday-anchored
    weeks, or the end of the tenth calendar year after the start year).
    Weekly rules without days fire on the start date's own weekday and are
    capped by count instead.

    Raises:
        RuleError: If a monthly rule has no usable pattern
    """
    dtstart = datetime.combine(dates.to_date(start_date), time())

    if rule.frequency.is_weekly:
        step = rule.frequency.week_step
        if not rule.days_of_week:
            return rrule(WEEKLY, dtstart=dtstart, interval=step, count=MAX_WEEK_STEPS + 1)
        last_week = dates.add_weeks(dates.start_of_week(start_date), MAX_WEEK_STEPS * step)
        return rrule(
            WEEKLY,
            dtstart=dtstart,
            interval=step,
            wkst=SU,
            byweekday=[WEEKDAYS[d] for d in sorted(rule.days_of_week)],
            until=datetime.combine(dates.to_date(dates.add_days(last_week, 6)), time()),
        )

    until = datetime(dtstart.year + MAX_YEARS, 12, 31)
    pattern = rule.monthly_pattern
    if isinstance(pattern, DayOfMonth):
        if pattern.day <= SAFE_MONTH_DAYS:
            return rrule(MONTHLY, dtstart=dtstart, bymonthday=pattern.day, until=until)
        # Last of days 28..day that the month has, so short months clamp
        return rrule(
            MONTHLY,
            dtstart=dtstart,
            bymonthday=range(SAFE_MONTH_DAYS, pattern.day + 1),
            bysetpos=-1,
            until=until,
        )
    if isinstance(pattern, WeekdayOfMonth):
        # Months without the requested occurrence produce nothing
        weekday = WEEKDAYS[pattern.weekday](pattern.occurrence)
        return rrule(MONTHLY, dtstart=dtstart, byweekday=weekday, until=until)
    # RecurrenceRule guarantees a pattern for monthly rules
    raise RuleError(f"monthly rule without a usable pattern: {rule!r}")
