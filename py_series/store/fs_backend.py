"""Filesystem-based series store."""

from __future__ import annotations

import asyncio
import json
import os
import uuid
import weakref
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..debug import store_logger as logger
from ..internal import HTTPError
from ..models import CreateInstanceCommand, EventInstance, SeriesTemplate
from ..reconciler import disambiguate_slug


def _timestamp() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class LocalSeriesStore:
    """Filesystem-based series store.

    Templates are stored as ``series/<id>.json`` and instances as
    ``instances/<id>.json`` under the root directory. Files are replaced
    atomically, so a crashed write never leaves half a document behind.

    Slugs in use and instance ids by series and instance date are indexed in
    memory on first use, so a batch of creates reads the directory once.
    """

    def __init__(self, root_dir: str | Path) -> None:
        """Initialize store.

        Args:
            root_dir: Root directory for all data
        """
        self.root_dir: Path = Path(root_dir)
        self.series_dir: Path = self.root_dir / "series"
        self.instances_dir: Path = self.root_dir / "instances"
        self.series_dir.mkdir(parents=True, exist_ok=True)
        self.instances_dir.mkdir(parents=True, exist_ok=True)
        # Entries go away once no caller holds or waits on the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._slugs: set[str] | None = None
        self._by_date: dict[tuple[str, str], str] = {}

    def series_lock(self, series_id: str) -> asyncio.Lock:
        """Per-series lock; see :meth:`SeriesStore.series_lock`."""
        lock = self._locks.get(series_id)
        if lock is None:
            lock = self._locks[series_id] = asyncio.Lock()
        return lock

    def _read(self, path: Path) -> dict[str, Any]:
        with open(path, encoding="utf-8") as f:
            data: dict[str, Any] = json.load(f)
        return data

    def _write(self, path: Path, data: dict[str, Any]) -> None:
        tmp = path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, path)

    def _series_file(self, series_id: str) -> Path:
        if not series_id or "/" in series_id or series_id.startswith("."):
            raise HTTPError(404, Exception(f"Invalid series id: {series_id!r}"))
        return self.series_dir / f"{series_id}.json"

    def _instance_file(self, instance_id: str) -> Path:
        if not instance_id or "/" in instance_id or instance_id.startswith("."):
            raise HTTPError(404, Exception(f"Invalid instance id: {instance_id!r}"))
        return self.instances_dir / f"{instance_id}.json"

    def _all_instances(self) -> list[EventInstance]:
        instances = []
        for file_path in self.instances_dir.glob("*.json"):
            instances.append(EventInstance.from_dict(self._read(file_path)))
        return instances

    def _index(self) -> set[str]:
        """Slugs in use, loading the index from disk on first call."""
        if self._slugs is None:
            self._slugs = set()
            for instance in self._all_instances():
                self._index_add(instance)
            logger.debug("indexed %d instance slug(s)", len(self._slugs))
        return self._slugs

    def _index_add(self, instance: EventInstance) -> None:
        self._index().add(instance.slug)
        if instance.series_id:
            self._by_date[(instance.series_id, instance.instance_date)] = instance.id

    def _index_remove(self, instance: EventInstance) -> None:
        self._index().discard(instance.slug)
        if self._by_date.get((instance.series_id, instance.instance_date)) == instance.id:
            del self._by_date[(instance.series_id, instance.instance_date)]

    async def list_series(self) -> list[SeriesTemplate]:
        """List all series templates, ordered by start date."""
        templates = [
            SeriesTemplate.from_dict(self._read(file_path)) for file_path in self.series_dir.glob("*.json")
        ]
        templates.sort(key=lambda t: (t.start_date, t.name))
        return templates

    async def get_series(self, series_id: str) -> SeriesTemplate:
        """Get a series template."""
        file_path = self._series_file(series_id)
        if not file_path.exists():
            raise HTTPError(404, Exception(f"Series not found: {series_id}"))
        return SeriesTemplate.from_dict(self._read(file_path))

    async def create_series(self, template: SeriesTemplate) -> SeriesTemplate:
        """Store a new series template."""
        file_path = self._series_file(template.id)
        if file_path.exists():
            raise HTTPError(409, Exception(f"Series already exists: {template.id}"))

        now = _timestamp()
        template.created_at = template.created_at or now
        template.updated_at = now
        self._write(file_path, template.to_dict())
        logger.debug("created series %s (%s)", template.id, template.name)
        return template

    async def put_series(self, template: SeriesTemplate) -> SeriesTemplate:
        """Replace an existing series template."""
        file_path = self._series_file(template.id)
        if not file_path.exists():
            raise HTTPError(404, Exception(f"Series not found: {template.id}"))

        template.updated_at = _timestamp()
        self._write(file_path, template.to_dict())
        logger.debug("updated series %s", template.id)
        return template

    async def delete_series(self, series_id: str) -> None:
        """Delete a series template and detach its remaining instances."""
        file_path = self._series_file(series_id)
        if not file_path.exists():
            raise HTTPError(404, Exception(f"Series not found: {series_id}"))

        for instance in await self.list_instances(series_id):
            self._index_remove(instance)
            instance.series_id = ""
            instance.updated_at = _timestamp()
            self._write(self._instance_file(instance.id), instance.to_dict())
            self._index_add(instance)

        file_path.unlink()
        logger.debug("deleted series %s", series_id)

    async def list_instances(self, series_id: str) -> list[EventInstance]:
        """List the instances of a series, ordered by instance date."""
        instances = [i for i in self._all_instances() if i.series_id == series_id]
        instances.sort(key=lambda i: (i.instance_date, i.slug))
        return instances

    async def get_instance(self, instance_id: str) -> EventInstance:
        """Get an instance."""
        file_path = self._instance_file(instance_id)
        if not file_path.exists():
            raise HTTPError(404, Exception(f"Instance not found: {instance_id}"))
        return EventInstance.from_dict(self._read(file_path))

    async def slugs(self) -> set[str]:
        """All slugs in use."""
        return set(self._index())

    async def create_instance(
        self, template: SeriesTemplate, command: CreateInstanceCommand
    ) -> tuple[EventInstance, bool]:
        """Materialize one instance from a template."""
        taken = self._index()
        existing_id = self._by_date.get((template.id, command.instance_date))
        if existing_id is not None:
            logger.debug("series %s already has an instance on %s", template.id, command.instance_date)
            return await self.get_instance(existing_id), False

        slug = disambiguate_slug(command.slug, taken)
        if slug != command.slug:
            logger.debug("slug %s taken, using %s", command.slug, slug)

        now = _timestamp()
        instance = EventInstance(
            id=str(uuid.uuid4()),
            series_id=template.id,
            slug=slug,
            instance_date=command.instance_date,
            created_at=now,
            updated_at=now,
            **template.content(),
        )
        self._write(self._instance_file(instance.id), instance.to_dict())
        self._index_add(instance)
        logger.debug("created instance %s on %s", instance.slug, instance.instance_date)
        return instance, True

    async def update_instance(self, instance: EventInstance) -> EventInstance:
        """Replace an existing instance."""
        file_path = self._instance_file(instance.id)
        if not file_path.exists():
            raise HTTPError(404, Exception(f"Instance not found: {instance.id}"))

        self._index_remove(EventInstance.from_dict(self._read(file_path)))
        instance.updated_at = _timestamp()
        self._write(file_path, instance.to_dict())
        self._index_add(instance)
        return instance

    async def delete_instance(self, instance_id: str) -> None:
        """Delete an instance."""
        file_path = self._instance_file(instance_id)
        if not file_path.exists():
            raise HTTPError(404, Exception(f"Instance not found: {instance_id}"))

        instance = EventInstance.from_dict(self._read(file_path))
        file_path.unlink()
        self._index_remove(instance)
        logger.debug("deleted instance %s", instance_id)
