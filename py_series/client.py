"""Client for the series HTTP API.

Wraps every endpoint of :mod:`py_series.server` and returns the decoded JSON
documents. Error responses are raised as :class:`HTTPError` carrying the
server's status code and message.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

import httpx

from .internal import HTTPError


@dataclass
class ClientConfig:
    """Configuration for the series API client."""

    base_url: str = field(default_factory=lambda: os.getenv("PY_SERIES_URL", "http://127.0.0.1:8080"))
    timeout: float = 30.0  # Request timeout in seconds


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict) and "error" in data:
        return str(data["error"])
    return response.text


class SeriesClient:
    """Async client for the series API."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize series API client.

        Args:
            config: Client configuration (uses default if None)
            transport: Optional httpx transport, e.g. ``httpx.ASGITransport``
                       to talk to an app in-process
        """
        self.config = config or ClientConfig()
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client and cleanup resources."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> SeriesClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def _make_request(
        self,
        method: str,
        path: str,
        today: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Make a request to the series API.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: API path (e.g., "/series")
            today: Optional reference date override
            **kwargs: Additional arguments for httpx request

        Returns:
            HTTP response

        Raises:
            HTTPError: If the server answers with an error status
        """
        client = await self._get_http_client()
        if today:
            kwargs.setdefault("params", {})["today"] = today

        response = await client.request(method, path, **kwargs)
        if response.is_error:
            raise HTTPError(response.status_code, Exception(_error_message(response)))
        return response

    async def _json(self, method: str, path: str, today: str | None = None, **kwargs: Any) -> dict[str, Any]:
        response = await self._make_request(method, path, today, **kwargs)
        data: dict[str, Any] = response.json()
        return data

    async def list_series(self) -> list[dict[str, Any]]:
        """List all series with their schedule descriptions."""
        data = await self._json("GET", "/series")
        series: list[dict[str, Any]] = data["series"]
        return series

    async def get_series(self, series_id: str) -> dict[str, Any]:
        return await self._json("GET", f"/series/{series_id}")

    async def create_series(self, series: dict[str, Any], today: str | None = None) -> dict[str, Any]:
        """Create a series and materialize its first instances.

        Args:
            series: Series document (name, startDate, recurrenceRule, ...)
            today: Optional reference date for the horizon

        Returns:
            Result document with the stored series and the created instances
        """
        return await self._json("POST", "/series", today, json=series)

    async def update_series(
        self, series_id: str, changes: dict[str, Any], today: str | None = None
    ) -> dict[str, Any]:
        return await self._json("PATCH", f"/series/{series_id}", today, json=changes)

    async def delete_series(self, series_id: str, today: str | None = None) -> dict[str, Any]:
        return await self._json("DELETE", f"/series/{series_id}", today)

    async def generate_more(self, series_id: str, today: str | None = None) -> dict[str, Any]:
        return await self._json("POST", f"/series/{series_id}/generate", today)

    async def regenerate(self, series_id: str, today: str | None = None) -> dict[str, Any]:
        return await self._json("POST", f"/series/{series_id}/regenerate", today)

    async def pause(self, series_id: str) -> dict[str, Any]:
        return await self._json("POST", f"/series/{series_id}/pause")

    async def resume(self, series_id: str) -> dict[str, Any]:
        return await self._json("POST", f"/series/{series_id}/resume")

    async def end(self, series_id: str) -> dict[str, Any]:
        return await self._json("POST", f"/series/{series_id}/end")

    async def list_instances(self, series_id: str) -> list[dict[str, Any]]:
        data = await self._json("GET", f"/series/{series_id}/instances")
        instances: list[dict[str, Any]] = data["instances"]
        return instances

    async def edit_instance(self, instance_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Hand-edit an instance, which makes it an exception."""
        return await self._json("PATCH", f"/instances/{instance_id}", json=changes)

    async def set_registrations(self, instance_id: str, count: int) -> dict[str, Any]:
        return await self._json("PUT", f"/instances/{instance_id}/registrations", json={"count": count})

    async def preview(
        self,
        recurrence_rule: dict[str, Any],
        start_date: str,
        end_date: str | None = None,
        max_occurrences: int | None = None,
        generate_until: str | None = None,
    ) -> dict[str, Any]:
        """Generate the dates of an unsaved rule.

        Returns:
            Dictionary with 'dates', 'schedule', 'bounds' and 'generateUntil' keys
        """
        payload: dict[str, Any] = {"recurrenceRule": recurrence_rule, "startDate": start_date}
        if end_date:
            payload["endDate"] = end_date
        if max_occurrences:
            payload["maxOccurrences"] = max_occurrences
        if generate_until:
            payload["generateUntil"] = generate_until
        return await self._json("POST", "/preview", json=payload)

    async def get_feed(self, series_id: str | None = None) -> str:
        """Fetch the iCalendar feed, for one series or all of them."""
        params = {"series": series_id} if series_id else {}
        response = await self._make_request("GET", "/feed.ics", params=params)
        return response.text
