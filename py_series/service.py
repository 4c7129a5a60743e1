"""Series service: applies reconciler decisions to a store.

This is the caller side of the engine. It reads the clock (once per call, or
takes ``today`` from the caller), loads current state from the store, asks
:mod:`py_series.reconciler` what to do and writes the result back, holding the
store's per-series lock for the whole cycle.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from .config import SeriesConfig
from .debug import logger
from .internal import HTTPError, RuleError
from .internal import dates
from .models import CreateInstanceCommand, EventInstance, SeriesStatus, SeriesTemplate, instance_changes
from .reconciler import (
    reconcile_extend,
    reconcile_initial,
    reconcile_regenerate,
    select_deletable_on_series_delete,
    select_propagation_targets,
)
from .store import SeriesStore

# Fields a series update may change
_EDITABLE_FIELDS = (
    "name",
    "description",
    "location",
    "timeStart",
    "timeEnd",
    "capacity",
    "recurrenceRule",
    "startDate",
    "endDate",
    "maxOccurrences",
)

# Fields an instance edit may change; any of them makes it an exception
_INSTANCE_EDITABLE_FIELDS = ("date", "name", "description", "location", "timeStart", "timeEnd", "capacity")

_STATUS_TRANSITIONS = {
    SeriesStatus.ACTIVE: {SeriesStatus.PAUSED, SeriesStatus.ENDED},
    SeriesStatus.PAUSED: {SeriesStatus.ACTIVE, SeriesStatus.ENDED},
    SeriesStatus.ENDED: set(),
}

_STATUS_MESSAGES = {
    SeriesStatus.ACTIVE: "Series resumed",
    SeriesStatus.PAUSED: "Series paused",
    SeriesStatus.ENDED: "Series ended",
}


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


@dataclass
class SeriesResult:
    """Outcome of a service operation."""

    series: SeriesTemplate | None
    message: str
    created: list[EventInstance] = field(default_factory=list)
    deleted_ids: list[str] = field(default_factory=list)
    kept_ids: list[str] = field(default_factory=list)
    updated_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "series": self.series.to_dict() if self.series else None,
            "message": self.message,
            "created": [i.to_dict() for i in self.created],
            "deletedIds": list(self.deleted_ids),
            "keptIds": list(self.kept_ids),
            "updatedIds": list(self.updated_ids),
        }


class SeriesService:
    """Series lifecycle operations on top of a :class:`SeriesStore`."""

    def __init__(self, store: SeriesStore, config: SeriesConfig | None = None) -> None:
        """Initialize service.

        Args:
            store: Series store
            config: Horizons and feed settings (uses defaults if None)
        """
        self.store = store
        self.config = config or SeriesConfig()

    def today(self) -> str:
        """Today's calendar date, the only place the service reads the clock."""
        return dates.from_date(date.today())

    async def _apply_creates(
        self, template: SeriesTemplate, commands: list[CreateInstanceCommand]
    ) -> list[EventInstance]:
        created = []
        for command in commands:
            instance, was_created = await self.store.create_instance(template, command)
            if was_created:
                created.append(instance)
        return created

    async def create_series(self, data: dict[str, Any], today: str | None = None) -> SeriesResult:
        """Create a series and materialize its first instances.

        Args:
            data: Series document (name, startDate, recurrenceRule, ...)
            today: Creation date (defaults to the clock)

        Raises:
            RuleError: If the rule or bounds are invalid
            DateError: If a date is malformed
        """
        today = today or self.today()
        template = SeriesTemplate.from_dict({**data, "id": str(uuid.uuid4()), "status": "active"})
        if not template.name:
            raise RuleError("name is required")

        async with self.store.series_lock(template.id):
            template = await self.store.create_series(template)
            commands = reconcile_initial(
                template,
                today,
                self.config.initial_horizon_months,
                taken_slugs=await self.store.slugs(),
            )
            created = await self._apply_creates(template, commands)

        logger.info("created series %s with %d instance(s)", template.id, len(created))
        return SeriesResult(
            series=template,
            message=f"Created series with {_plural(len(created), 'instance')}",
            created=created,
        )

    async def update_series(
        self, series_id: str, changes: dict[str, Any], today: str | None = None
    ) -> SeriesResult:
        """Edit a series template.

        Content edits are copied onto future instances that are not
        exceptions. Rule and bounds edits are stored only; past instances are
        never rewritten and the future is rebuilt by :meth:`regenerate`.
        """
        today = today or self.today()
        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            raise RuleError(f"fields cannot be edited: {', '.join(sorted(unknown))}")

        async with self.store.series_lock(series_id):
            current = await self.store.get_series(series_id)
            document = current.to_dict()
            document.update(changes)
            if changes.get("endDate"):
                document["maxOccurrences"] = None
            elif changes.get("maxOccurrences"):
                document["endDate"] = None

            template = SeriesTemplate.from_dict(document)
            if not template.name:
                raise RuleError("name is required")
            template = await self.store.put_series(template)

            updated_ids: list[str] = []
            if template.content() != current.content():
                instances = await self.store.list_instances(series_id)
                targets = set(select_propagation_targets((i.to_existing() for i in instances), today))
                for instance in instances:
                    if instance.id in targets:
                        for name, value in template.content().items():
                            setattr(instance, name, value)
                        await self.store.update_instance(instance)
                        updated_ids.append(instance.id)

        return SeriesResult(series=template, message="Series updated", updated_ids=updated_ids)

    async def set_status(self, series_id: str, status: SeriesStatus | str) -> SeriesResult:
        """Pause, resume or end a series.

        Raises:
            HTTPError: If the transition is not allowed (409)
        """
        status = SeriesStatus(status)
        async with self.store.series_lock(series_id):
            template = await self.store.get_series(series_id)
            if status is not template.status:
                if status not in _STATUS_TRANSITIONS[template.status]:
                    raise HTTPError(
                        409, Exception(f"Series is {template.status.value}, cannot become {status.value}")
                    )
                template.status = status
                template = await self.store.put_series(template)
        return SeriesResult(series=template, message=_STATUS_MESSAGES[status])

    def _require_active(self, template: SeriesTemplate) -> None:
        if not template.is_active:
            raise HTTPError(409, Exception(f"Series is {template.status.value}"))

    async def generate_more(self, series_id: str, today: str | None = None) -> SeriesResult:
        """Extend a series to the farther horizon, creating only missing dates."""
        today = today or self.today()
        async with self.store.series_lock(series_id):
            template = await self.store.get_series(series_id)
            self._require_active(template)
            instances = await self.store.list_instances(series_id)
            commands = reconcile_extend(
                template,
                [i.instance_date for i in instances],
                today,
                self.config.extend_horizon_months,
                taken_slugs=await self.store.slugs(),
            )
            created = await self._apply_creates(template, commands)

        if created:
            message = f"Generated {_plural(len(created), 'new instance')}"
        else:
            message = "No new instances needed (already generated or end reached)"
        return SeriesResult(series=template, message=message, created=created)

    async def regenerate(self, series_id: str, today: str | None = None) -> SeriesResult:
        """Rebuild the future of a series from its current template."""
        today = today or self.today()
        async with self.store.series_lock(series_id):
            template = await self.store.get_series(series_id)
            self._require_active(template)
            instances = await self.store.list_instances(series_id)
            plan = reconcile_regenerate(
                template,
                [i.to_existing() for i in instances],
                today,
                self.config.regenerate_horizon_months,
                taken_slugs=await self.store.slugs(),
            )
            for instance_id in plan.delete_ids:
                await self.store.delete_instance(instance_id)
            created = await self._apply_creates(template, plan.create)

        return SeriesResult(
            series=template,
            message=f"Regenerated instances: {len(plan.delete_ids)} deleted, {len(created)} created",
            created=created,
            deleted_ids=plan.delete_ids,
            kept_ids=plan.kept_ids,
        )

    async def delete_series(self, series_id: str, today: str | None = None) -> SeriesResult:
        """Delete a series.

        Future instances with nothing attached go with it; past instances,
        registered instances and exceptions are kept, detached from the series.
        """
        today = today or self.today()
        async with self.store.series_lock(series_id):
            instances = await self.store.list_instances(series_id)
            await self.store.get_series(series_id)
            deletable = select_deletable_on_series_delete((i.to_existing() for i in instances), today)
            for instance_id in deletable:
                await self.store.delete_instance(instance_id)
            await self.store.delete_series(series_id)

        removed = set(deletable)
        kept = [i.id for i in instances if i.id not in removed]
        return SeriesResult(
            series=None,
            message=f"Series deleted ({_plural(len(deletable), 'instance')} removed)",
            deleted_ids=deletable,
            kept_ids=kept,
        )

    async def list_instances(self, series_id: str) -> list[EventInstance]:
        """Instances of an existing series."""
        await self.store.get_series(series_id)
        return await self.store.list_instances(series_id)

    async def edit_instance(self, instance_id: str, changes: dict[str, Any]) -> EventInstance:
        """Hand-edit one instance, turning it into an exception.

        Exceptions are never overwritten by template edits nor deleted by
        regeneration. ``instanceDate`` cannot change; moving the event changes
        ``date``.
        """
        unknown = set(changes) - set(_INSTANCE_EDITABLE_FIELDS)
        if unknown:
            raise RuleError(f"fields cannot be edited: {', '.join(sorted(unknown))}")
        values = instance_changes(changes)

        instance = await self.store.get_instance(instance_id)
        async with self.store.series_lock(instance.series_id):
            instance = await self.store.get_instance(instance_id)
            for name, value in values.items():
                setattr(instance, name, value)
            instance.is_exception = True
            return await self.store.update_instance(instance)

    async def set_registrations(self, instance_id: str, count: int) -> EventInstance:
        """Record how many registrations an instance has.

        Registration tracking lives elsewhere; the count is what protects an
        instance from deletion.
        """
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise RuleError(f"registration count must be a non-negative integer, got {count!r}")

        instance = await self.store.get_instance(instance_id)
        async with self.store.series_lock(instance.series_id):
            instance = await self.store.get_instance(instance_id)
            instance.registration_count = count
            return await self.store.update_instance(instance)
