"""Conversion of series and instances to iCalendar.

Used by the ``.ics`` feed and the per-series calendar export:
- RRULE generation from a :class:`~py_series.rule.RecurrenceRule`
- One VEVENT per materialized instance, so hand-edited exceptions show up
  exactly as stored
- A master VEVENT per series carrying the RRULE

Times are wall-clock ``HH:MM`` values without a timezone; they are written as
floating times, and events without a start time become all-day events.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime, time, timedelta

from icalendar import Calendar as iCalendar
from icalendar import Event as iEvent
from icalendar import vRecur

from .debug import logger
from .describe import describe, describe_bounds
from .generator import SAFE_MONTH_DAYS, occurrence_rule
from .internal import dates
from .models import EventInstance, SeriesTemplate
from .rule import DayOfMonth, RecurrenceRule, WeekdayOfMonth

PRODID = "-//py-series//Recurring Events//EN"
UID_DOMAIN = "py-series"

# iCalendar weekday codes, indexed 0=Sunday like the rule model
ICAL_DAYS = ["SU", "MO", "TU", "WE", "TH", "FR", "SA"]


def rule_to_rrule(
    rule: RecurrenceRule,
    end_date: str | None = None,
    max_occurrences: int | None = None,
    *,
    timed: bool = False,
) -> str:
    """Convert a recurrence rule to an iCalendar RRULE value.

    Weeks start on Sunday (``WKST=SU``), which is what keeps a biweekly rule
    on the same weeks as the generator. A day of month past the 28th is
    written as "the last of 28..day that exists", the RRULE spelling of
    clamping to short months.

    Args:
        rule: Recurrence rule
        end_date: Optional inclusive series end date, rendered as UNTIL
        max_occurrences: Optional series length, rendered as COUNT
        timed: True if the VEVENT has a time of day; UNTIL must then be a
               date-time as well

    Returns:
        RRULE string (e.g., "FREQ=WEEKLY;WKST=SU;BYDAY=TU,TH")

    Example:
        >>> rule_to_rrule(RecurrenceRule.monthly_on_weekday(5, -1))
        'FREQ=MONTHLY;BYDAY=-1FR'
    """
    parts = []
    if rule.frequency.is_weekly:
        parts.append("FREQ=WEEKLY")
        if rule.frequency.week_step > 1:
            parts.append(f"INTERVAL={rule.frequency.week_step}")
        parts.append("WKST=SU")
        if rule.days_of_week:
            parts.append("BYDAY=" + ",".join(ICAL_DAYS[d] for d in rule.days_of_week))
    else:
        parts.append("FREQ=MONTHLY")
        pattern = rule.monthly_pattern
        if isinstance(pattern, DayOfMonth):
            if pattern.day <= SAFE_MONTH_DAYS:
                parts.append(f"BYMONTHDAY={pattern.day}")
            else:
                days = ",".join(str(d) for d in range(SAFE_MONTH_DAYS, pattern.day + 1))
                parts.append(f"BYMONTHDAY={days}")
                parts.append("BYSETPOS=-1")
        elif isinstance(pattern, WeekdayOfMonth):
            parts.append(f"BYDAY={pattern.occurrence}{ICAL_DAYS[pattern.weekday]}")

    if end_date is not None:
        until = end_date.replace("-", "")
        parts.append(f"UNTIL={until}T235959" if timed else f"UNTIL={until}")
    elif max_occurrences is not None:
        parts.append(f"COUNT={max_occurrences}")

    return ";".join(parts)


def parse_time(value: str | None) -> time | None:
    """Parse a wall-clock ``HH:MM`` (or ``HH:MM:SS``) value.

    Raises:
        ValueError: If the value is not a time of day
    """
    if not value:
        return None
    return time.fromisoformat(value)


def _add_when(event: iEvent, day: str, time_start: str, time_end: str | None) -> None:
    on = dates.to_date(day)
    start = parse_time(time_start)
    if start is None:
        event.add("dtstart", on)
        event.add("dtend", on + timedelta(days=1))
        return

    start_dt = datetime.combine(on, start)
    event.add("dtstart", start_dt)
    end = parse_time(time_end)
    if end is not None:
        end_dt = datetime.combine(on, end)
        # An end before the start runs past midnight
        if end_dt <= start_dt:
            end_dt += timedelta(days=1)
        event.add("dtend", end_dt)


def _add_content(event: iEvent, name: str, description: str, location: str) -> None:
    if name:
        event.add("summary", name)
    if description:
        event.add("description", description)
    if location:
        event.add("location", location)


def instance_to_vevent(instance: EventInstance, stamp: datetime | None = None) -> iEvent:
    """Convert a materialized instance to a VEVENT.

    The event is placed on ``instance.date``, which differs from the
    generated date when the instance was moved by hand.

    Raises:
        ValueError: If the instance's times are malformed
    """
    event = iEvent()
    event.add("uid", f"{instance.id}@{UID_DOMAIN}")
    _add_content(event, instance.name, instance.description, instance.location)
    _add_when(event, instance.date, instance.time_start, instance.time_end)

    if instance.series_id:
        event.add("related-to", f"{instance.series_id}@{UID_DOMAIN}")
    event.add("status", "CANCELLED" if instance.status == "cancelled" else "CONFIRMED")
    event.add("dtstamp", stamp or datetime.now(UTC))
    return event


def first_occurrence(template: SeriesTemplate) -> str | None:
    """First generated date of a series, None if the rule never fires."""
    limit = template.end_date or dates.add_months(template.start_date, 12)
    start = datetime.combine(dates.to_date(template.start_date), time())
    first = occurrence_rule(template.rule, template.start_date).after(start, inc=True)
    if first is None or dates.from_date(first) > limit:
        return None
    return dates.from_date(first)


def series_to_vevent(template: SeriesTemplate, stamp: datetime | None = None) -> iEvent:
    """Convert a series template to a recurring master VEVENT.

    DTSTART is the first generated date rather than the template start, so
    clients that always include DTSTART do not show a phantom occurrence.

    Raises:
        ValueError: If the template's times are malformed or it has no
                    occurrence within a year of its start
    """
    first = first_occurrence(template)
    if first is None:
        raise ValueError(f"series {template.id} has no occurrence to export")

    event = iEvent()
    event.add("uid", f"{template.id}@{UID_DOMAIN}")
    _add_content(event, template.name, template.description, template.location)
    _add_when(event, first, template.time_start, template.time_end)

    rrule = rule_to_rrule(
        template.rule,
        template.end_date,
        template.max_occurrences,
        timed=bool(template.time_start),
    )
    event.add("rrule", vRecur.from_ical(rrule))
    event.add(
        "comment",
        f"{describe(template.rule)}. "
        f"{describe_bounds(template.start_date, template.end_date, template.max_occurrences)}",
    )
    event.add("dtstamp", stamp or datetime.now(UTC))
    return event


def _new_calendar(feed_name: str) -> iCalendar:
    cal = iCalendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("method", "PUBLISH")
    cal.add("x-wr-calname", feed_name)
    return cal


def build_feed(
    templates: Iterable[SeriesTemplate],
    instances: Mapping[str, list[EventInstance]],
    feed_name: str,
    stamp: datetime | None = None,
) -> str:
    """Build a subscription feed with one VEVENT per materialized instance.

    A series whose instances cannot be converted is left out of the feed
    with a warning; the rest of the feed is still produced.

    Args:
        templates: Series to include
        instances: Instances per series id
        feed_name: Calendar name shown by clients
        stamp: DTSTAMP for every event (defaults to now)

    Returns:
        iCalendar string (BEGIN:VCALENDAR...END:VCALENDAR)
    """
    cal = _new_calendar(feed_name)
    stamp = stamp or datetime.now(UTC)

    for template in templates:
        try:
            events = [instance_to_vevent(i, stamp) for i in instances.get(template.id, [])]
        except ValueError as e:
            logger.warning("skipping series %s in feed: %s", template.id, e)
            continue
        for event in events:
            cal.add_component(event)

    return cal.to_ical().decode("utf-8")


def build_series_calendar(template: SeriesTemplate, stamp: datetime | None = None) -> str:
    """A calendar holding the recurring master VEVENT of one series.

    Raises:
        ValueError: If the series cannot be exported
    """
    cal = _new_calendar(template.name)
    cal.add_component(series_to_vevent(template, stamp))
    return cal.to_ical().decode("utf-8")
