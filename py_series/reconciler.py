"""Series reconciliation.

Keeps the materialized instances of a series consistent with its template.
Every function here is pure: it receives the template, the instances the store
already holds and "today", and returns commands. Applying them is the caller's
job (see :mod:`py_series.service`).

Because decisions are made by diffing against the supplied state, running any
operation again, after a retry or a concurrent trigger, converges on the same
set of instances instead of duplicating them.
"""

from __future__ import annotations

import re
from collections.abc import Collection, Container, Iterable

from .debug import engine_logger as logger
from .generator import generate_occurrences
from .internal import dates
from .models import CreateInstanceCommand, ExistingInstance, RegenerationPlan, SeriesTemplate


DEFAULT_INITIAL_HORIZON_MONTHS = 3
DEFAULT_EXTEND_HORIZON_MONTHS = 6
DEFAULT_REGENERATE_HORIZON_MONTHS = 3

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Lowercase, collapse anything non-alphanumeric to single hyphens."""
    return _NON_ALNUM.sub("-", text.lower()).strip("-")


def instance_slug(name: str, instance_date: str) -> str:
    """Candidate slug for an instance, e.g. ``"open-climb-2026-01-06"``."""
    base = slugify(name) or "event"
    return f"{base}-{instance_date}"


def disambiguate_slug(slug: str, taken: Container[str]) -> str:
    """Return ``slug`` or the first free ``slug-2``, ``slug-3``, ...

    Deterministic for a given set of taken slugs, so a retried batch allocates
    the same identifiers.
    """
    if slug not in taken:
        return slug
    suffix = 2
    while f"{slug}-{suffix}" in taken:
        suffix += 1
    return f"{slug}-{suffix}"


def _commands(
    template: SeriesTemplate, occurrence_dates: Iterable[str], taken_slugs: Collection[str]
) -> list[CreateInstanceCommand]:
    allocated = set(taken_slugs)
    commands = []
    for occurrence in occurrence_dates:
        slug = disambiguate_slug(instance_slug(template.name, occurrence), allocated)
        allocated.add(slug)
        commands.append(CreateInstanceCommand(template.id, occurrence, slug))
    return commands


def _within_count(template: SeriesTemplate, held: int, candidates: Iterable[str]) -> list[str]:
    """Cap new dates so a count-bounded series never holds more than
    ``max_occurrences`` instances, whatever dates its kept instances are on.
    """
    candidates = list(candidates)
    if template.max_occurrences is None:
        return candidates
    return candidates[: max(0, template.max_occurrences - held)]


def resume_start(template: SeriesTemplate, from_date: str) -> str:
    """Where to start generating so that output from ``from_date`` on matches
    a run from the template's own start date.

    Weekly-class rules are snapped back onto the template's week grid, which
    keeps biweekly series on their original weeks. A count-bounded series
    always restarts from its start date so the count stays series-wide.
    """
    start = template.start_date
    if template.max_occurrences is not None or from_date <= start:
        return start

    rule = template.rule
    if not rule.frequency.is_weekly:
        return max(start, dates.start_of_month(from_date))

    step = rule.frequency.week_step
    origin = dates.start_of_week(start) if rule.days_of_week else start
    weeks = dates.days_between(origin, from_date) // 7
    aligned = dates.add_weeks(origin, weeks - weeks % step)
    return max(start, aligned)


def reconcile_initial(
    template: SeriesTemplate,
    today: str,
    horizon_months: int = DEFAULT_INITIAL_HORIZON_MONTHS,
    taken_slugs: Collection[str] = (),
) -> list[CreateInstanceCommand]:
    """First materialization of a new series.

    Args:
        template: Freshly created series
        today: Creation date; the horizon is ``horizon_months`` after it
        horizon_months: How far ahead to materialize
        taken_slugs: Slugs already used by other events

    Returns:
        One create command per generated date
    """
    if not template.is_active:
        logger.info("series %s is %s, nothing to materialize", template.id, template.status.value)
        return []

    generate_until = dates.add_months(today, horizon_months)
    occurrences = generate_occurrences(
        template.rule,
        template.start_date,
        template.end_date,
        template.max_occurrences,
        generate_until=generate_until,
    )
    logger.info(
        "series %s: materializing %d instance(s) through %s",
        template.id,
        len(occurrences),
        generate_until,
    )
    return _commands(template, occurrences, taken_slugs)


def reconcile_extend(
    template: SeriesTemplate,
    existing_dates: Iterable[str],
    today: str,
    horizon_months: int = DEFAULT_EXTEND_HORIZON_MONTHS,
    taken_slugs: Collection[str] = (),
) -> list[CreateInstanceCommand]:
    """Push the series out to a farther horizon ("generate more").

    Generation resumes at the latest materialized date (or the template start
    if there is none); dates already present are never created again.

    Args:
        template: Series template
        existing_dates: Instance dates the store holds for this series
        today: Reference date; the horizon is ``horizon_months`` after it
        horizon_months: How far ahead to materialize
        taken_slugs: Slugs already used by other events

    Returns:
        Create commands for the missing dates only
    """
    if not template.is_active:
        logger.info("series %s is %s, not extending", template.id, template.status.value)
        return []

    existing = set(existing_dates)
    resume_from = max(existing) if existing else template.start_date
    generate_until = dates.add_months(today, horizon_months)

    occurrences = generate_occurrences(
        template.rule,
        resume_start(template, resume_from),
        template.end_date,
        template.max_occurrences,
        generate_until=generate_until,
    )
    missing = _within_count(
        template, len(existing), (d for d in occurrences if d >= resume_from and d not in existing)
    )

    logger.info(
        "series %s: %d new instance(s) between %s and %s",
        template.id,
        len(missing),
        resume_from,
        generate_until,
    )
    return _commands(template, missing, taken_slugs)


def reconcile_regenerate(
    template: SeriesTemplate,
    existing_instances: Iterable[ExistingInstance],
    today: str,
    horizon_months: int = DEFAULT_REGENERATE_HORIZON_MONTHS,
    taken_slugs: Collection[str] = (),
) -> RegenerationPlan:
    """Rebuild the future of a series from its current template.

    Future instances (``instance_date >= today``) with no registrations are
    marked for deletion. Instances with registrations and exceptions stay,
    whatever their date, and keep their date occupied: no new instance is
    created on a date that still has one. Kept instances also count toward
    ``max_occurrences``, so a count-bounded series never grows past it.

    Args:
        template: Series template, possibly edited since the last run
        existing_instances: Every instance the store holds for this series
        today: Reference date; nothing before it is touched
        horizon_months: How far ahead to materialize
        taken_slugs: Slugs already used by other events

    Returns:
        RegenerationPlan with instances to delete and dates to create
    """
    plan = RegenerationPlan()
    if not template.is_active:
        logger.info("series %s is %s, not regenerating", template.id, template.status.value)
        return plan

    instances = list(existing_instances)
    for instance in instances:
        if instance.instance_date < today:
            continue
        if instance.has_registrations or instance.is_exception:
            plan.kept_ids.append(instance.id)
        else:
            plan.delete_ids.append(instance.id)

    deleted = set(plan.delete_ids)
    remaining = {i.instance_date for i in instances if i.id not in deleted}
    # Slugs of deleted instances can be reused by their replacements
    taken = set(taken_slugs) - {i.slug for i in instances if i.id in deleted}

    from_date = max(today, template.start_date)
    generate_until = dates.add_months(today, horizon_months)
    occurrences = generate_occurrences(
        template.rule,
        resume_start(template, from_date),
        template.end_date,
        template.max_occurrences,
        generate_until=generate_until,
    )
    missing = (d for d in occurrences if d >= from_date and d not in remaining)
    plan.create = _commands(
        template,
        _within_count(template, len(instances) - len(deleted), missing),
        taken,
    )

    logger.info(
        "series %s: regenerate deletes %d, keeps %d, creates %d through %s",
        template.id,
        len(plan.delete_ids),
        len(plan.kept_ids),
        len(plan.create),
        generate_until,
    )
    return plan


def select_propagation_targets(existing_instances: Iterable[ExistingInstance], today: str) -> list[str]:
    """Instances a template content edit rewrites: future and not exceptions."""
    return [i.id for i in existing_instances if i.instance_date >= today and not i.is_exception]


def select_deletable_on_series_delete(
    existing_instances: Iterable[ExistingInstance], today: str
) -> list[str]:
    """Instances removed along with their series.

    Same rule as regeneration: future, no registrations, not an exception.
    Past instances and anything a person relies on outlive the series.
    """
    return [
        i.id
        for i in existing_instances
        if i.instance_date >= today and not i.has_registrations and not i.is_exception
    ]
