"""Series store interface."""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Protocol

from ..models import CreateInstanceCommand, EventInstance, SeriesTemplate


class SeriesStore(Protocol):
    """Storage for series templates and their instances.

    The engine never talks to a store; the service layer reads state from it,
    asks the reconciler for commands and applies them here.
    """

    def series_lock(self, series_id: str) -> AbstractAsyncContextManager[object]:
        """Serialize reconciliation of one series.

        The service holds this lock for a whole read-reconcile-write cycle.
        Store methods themselves do not take it.

        Args:
            series_id: Series identifier

        Returns:
            Async context manager
        """
        ...

    async def list_series(self) -> list[SeriesTemplate]:
        """List all series templates, ordered by start date."""
        ...

    async def get_series(self, series_id: str) -> SeriesTemplate:
        """Get a series template.

        Raises:
            HTTPError: If the series does not exist (404)
        """
        ...

    async def create_series(self, template: SeriesTemplate) -> SeriesTemplate:
        """Store a new series template.

        Returns:
            The stored template, with timestamps set

        Raises:
            HTTPError: If a series with the same id exists (409)
        """
        ...

    async def put_series(self, template: SeriesTemplate) -> SeriesTemplate:
        """Replace an existing series template.

        Raises:
            HTTPError: If the series does not exist (404)
        """
        ...

    async def delete_series(self, series_id: str) -> None:
        """Delete a series template.

        Instances that remain are detached from the series, not deleted.

        Raises:
            HTTPError: If the series does not exist (404)
        """
        ...

    async def list_instances(self, series_id: str) -> list[EventInstance]:
        """List the instances of a series, ordered by instance date."""
        ...

    async def get_instance(self, instance_id: str) -> EventInstance:
        """Get an instance.

        Raises:
            HTTPError: If the instance does not exist (404)
        """
        ...

    async def slugs(self) -> set[str]:
        """All slugs in use."""
        ...

    async def create_instance(
        self, template: SeriesTemplate, command: CreateInstanceCommand
    ) -> tuple[EventInstance, bool]:
        """Materialize one instance from a template.

        Creating a date the series already has returns the existing instance.
        A slug already in use is disambiguated, never rejected.

        Args:
            template: Series the instance belongs to; its content is copied
            command: Create command from the reconciler

        Returns:
            Tuple of (instance, created) where created is False for a duplicate
        """
        ...

    async def update_instance(self, instance: EventInstance) -> EventInstance:
        """Replace an existing instance.

        Raises:
            HTTPError: If the instance does not exist (404)
        """
        ...

    async def delete_instance(self, instance_id: str) -> None:
        """Delete an instance.

        Raises:
            HTTPError: If the instance does not exist (404)
        """
        ...
