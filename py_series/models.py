"""Series, instance and reconciliation command types.

Templates and instances are owned by the store; the engine only reads them.
JSON field names follow the stored documents (camelCase).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import time
from enum import Enum
from typing import Any

from .internal import RuleError
from .internal import dates
from .rule import RecurrenceRule

# Template fields copied onto every instance it materializes
CONTENT_FIELDS = ("name", "description", "location", "time_start", "time_end", "capacity")

_TIME_RE = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")


class SeriesStatus(str, Enum):
    """Lifecycle of a series template."""

    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"


def _optional_int(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise RuleError(f"{key} must be an integer, got {value!r}")
    return value


def _optional_date(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    dates.parse_date(value)
    return str(value)


def _optional_text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise RuleError(f"{key} must be a string, got {value!r}")
    return value.strip()


def _optional_time(data: dict[str, Any], key: str) -> str | None:
    """Validate a wall-clock ``HH:MM`` (or ``HH:MM:SS``) field; blank means unset."""
    value = _optional_text(data, key)
    if not value:
        return None
    if _TIME_RE.match(value) is None:
        raise RuleError(f"{key} must be a time of day as HH:MM, got {value!r}")
    try:
        time.fromisoformat(value)
    except ValueError as e:
        raise RuleError(f"{key} is not a time of day: {value!r}") from e
    return value


def instance_changes(changes: dict[str, Any]) -> dict[str, Any]:
    """Validate a hand edit of an instance.

    Args:
        changes: Submitted fields, by JSON name

    Returns:
        Validated values keyed by attribute name

    Raises:
        RuleError: If a field has the wrong type or a time is malformed
        DateError: If ``date`` is malformed
    """
    result: dict[str, Any] = {}
    if "date" in changes:
        dates.parse_date(changes["date"])
        result["date"] = changes["date"]
    for key in ("name", "description", "location"):
        if key in changes:
            result[key] = _optional_text(changes, key)
    if "name" in result and not result["name"]:
        raise RuleError("name cannot be blank")
    if "timeStart" in changes:
        result["time_start"] = _optional_time(changes, "timeStart") or ""
    if "timeEnd" in changes:
        result["time_end"] = _optional_time(changes, "timeEnd")
    if "capacity" in changes:
        result["capacity"] = _optional_int(changes, "capacity")
    return result


@dataclass
class SeriesTemplate:
    """A recurring event definition.

    Attributes:
        id: Series identifier
        name: Display name, also the base of instance slugs
        rule: Recurrence rule
        start_date: First possible occurrence (YYYY-MM-DD)
        end_date: Optional last possible occurrence, exclusive with max_occurrences
        max_occurrences: Optional series length, exclusive with end_date
        status: active, paused or ended
    """

    id: str
    name: str
    rule: RecurrenceRule
    start_date: str
    end_date: str | None = None
    max_occurrences: int | None = None
    status: SeriesStatus = SeriesStatus.ACTIVE
    description: str = ""
    location: str = ""
    time_start: str = ""
    time_end: str | None = None
    capacity: int | None = None
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        self.status = SeriesStatus(self.status)
        dates.parse_date(self.start_date)
        if self.end_date is not None:
            dates.parse_date(self.end_date)
        if self.end_date is not None and self.max_occurrences is not None:
            raise RuleError("a series ends by date or by count, not both")
        if self.max_occurrences is not None and self.max_occurrences < 1:
            raise RuleError(f"maximum occurrences must be positive, got {self.max_occurrences}")

    @property
    def is_active(self) -> bool:
        return self.status is SeriesStatus.ACTIVE

    def content(self) -> dict[str, Any]:
        """Template content copied onto instances."""
        return {name: getattr(self, name) for name in CONTENT_FIELDS}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SeriesTemplate:
        """Build a template from its stored (or submitted) JSON document.

        ``recurrenceRule`` may be the rule object or its serialized string.

        Raises:
            RuleError: If the rule or the bounds are invalid
            DateError: If a date is malformed
        """
        raw_rule = data.get("recurrenceRule")
        if isinstance(raw_rule, str):
            rule = RecurrenceRule.from_json(raw_rule)
        else:
            rule = RecurrenceRule.from_dict(raw_rule)

        start_date = data.get("startDate")
        if not start_date:
            raise RuleError("startDate is required")
        dates.parse_date(start_date)

        try:
            status = SeriesStatus(data.get("status") or SeriesStatus.ACTIVE)
        except ValueError as e:
            raise RuleError(f"unknown series status {data.get('status')!r}") from e

        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")).strip(),
            rule=rule,
            start_date=start_date,
            end_date=_optional_date(data, "endDate"),
            max_occurrences=_optional_int(data, "maxOccurrences"),
            status=status,
            description=_optional_text(data, "description"),
            location=_optional_text(data, "location"),
            time_start=_optional_time(data, "timeStart") or "",
            time_end=_optional_time(data, "timeEnd"),
            capacity=_optional_int(data, "capacity"),
            created_at=str(data.get("createdAt", "")),
            updated_at=str(data.get("updatedAt", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "recurrenceRule": self.rule.to_dict(),
            "startDate": self.start_date,
            "endDate": self.end_date,
            "maxOccurrences": self.max_occurrences,
            "status": self.status.value,
            "description": self.description,
            "location": self.location,
            "timeStart": self.time_start,
            "timeEnd": self.time_end,
            "capacity": self.capacity,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class ExistingInstance:
    """What the reconciler needs to know about a materialized instance."""

    id: str
    instance_date: str
    has_registrations: bool = False
    is_exception: bool = False
    slug: str = ""


@dataclass
class EventInstance:
    """One materialized occurrence of a series.

    ``instance_date`` is the date the engine generated and never changes;
    ``date`` is when the event actually happens and may be moved by hand,
    which also marks the instance as an exception.
    """

    id: str
    series_id: str
    slug: str
    instance_date: str
    date: str = ""
    name: str = ""
    description: str = ""
    location: str = ""
    time_start: str = ""
    time_end: str | None = None
    capacity: int | None = None
    status: str = "published"
    is_exception: bool = False
    registration_count: int = 0
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        if not self.date:
            self.date = self.instance_date

    @property
    def has_registrations(self) -> bool:
        return self.registration_count > 0

    def to_existing(self) -> ExistingInstance:
        return ExistingInstance(
            id=self.id,
            instance_date=self.instance_date,
            has_registrations=self.has_registrations,
            is_exception=self.is_exception,
            slug=self.slug,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EventInstance:
        return cls(
            id=data["id"],
            series_id=data["seriesId"],
            slug=data["slug"],
            instance_date=data["instanceDate"],
            date=data.get("date", ""),
            name=data.get("name", ""),
            description=data.get("description", ""),
            location=data.get("location", ""),
            time_start=data.get("timeStart", ""),
            time_end=data.get("timeEnd"),
            capacity=data.get("capacity"),
            status=data.get("status", "published"),
            is_exception=bool(data.get("isException", False)),
            registration_count=int(data.get("registrationCount", 0)),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "seriesId": self.series_id,
            "slug": self.slug,
            "instanceDate": self.instance_date,
            "date": self.date,
            "name": self.name,
            "description": self.description,
            "location": self.location,
            "timeStart": self.time_start,
            "timeEnd": self.time_end,
            "capacity": self.capacity,
            "status": self.status,
            "isException": self.is_exception,
            "registrationCount": self.registration_count,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class CreateInstanceCommand:
    """Request to materialize one instance of a series."""

    series_id: str
    instance_date: str
    slug: str

    def to_dict(self) -> dict[str, Any]:
        return {"seriesId": self.series_id, "instanceDate": self.instance_date, "slug": self.slug}


@dataclass
class RegenerationPlan:
    """Outcome of regenerating the future of a series.

    Attributes:
        delete_ids: Future instances with nothing attached, safe to delete
        create: Instances to materialize from the current template
        kept_ids: Future instances preserved (registrations or exceptions)
    """

    delete_ids: list[str] = field(default_factory=list)
    create: list[CreateInstanceCommand] = field(default_factory=list)
    kept_ids: list[str] = field(default_factory=list)

    @property
    def create_dates(self) -> list[str]:
        return [command.instance_date for command in self.create]

    def to_dict(self) -> dict[str, Any]:
        return {
            "deleteIds": list(self.delete_ids),
            "createDates": self.create_dates,
            "keptIds": list(self.kept_ids),
        }
