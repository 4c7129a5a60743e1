"""ICS feed endpoint for calendar subscriptions.

Provides read-only HTTP access to materialized instances via .ics URL:
    GET /feed.ics                 every series
    GET /feed.ics?series=ID       one series

and the recurrence of a single series as one recurring event:
    GET /series/{series_id}/calendar.ics

The feed lists what was actually materialized, hand-edited exceptions
included, so subscribers see the same events as the event listings.
"""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import Response

from .debug import logger
from .ical import build_feed, build_series_calendar
from .internal import HTTPError
from .service import SeriesService


class ICSFeedHandler:
    """Handler for the ICS feed endpoints."""

    def __init__(self, service: SeriesService, feed_name: str | None = None) -> None:
        """Initialize ICS feed handler.

        Args:
            service: Series service to read templates and instances from
            feed_name: Calendar name shown by clients (uses config if None)
        """
        self.service = service
        self.feed_name = feed_name or service.config.feed_name

    def _calendar_response(self, content: str, filename: str) -> Response:
        return Response(
            content=content,
            media_type="text/calendar; charset=utf-8",
            headers={
                "Content-Disposition": f'inline; filename="{filename}"',
                "Cache-Control": "private, max-age=300",
            },
        )

    def _not_found(self, err: HTTPError) -> Response:
        return Response(content=err.message, status_code=err.code, media_type="text/plain")

    async def handle_feed_request(self, request: Request) -> Response:
        """Handle GET /feed.ics[?series=ID].

        Returns:
            text/calendar response with one VEVENT per instance, or a
            text/plain 404 for an unknown series
        """
        store = self.service.store
        series_id = request.query_params.get("series")

        try:
            if series_id:
                templates = [await store.get_series(series_id)]
            else:
                templates = await store.list_series()
        except HTTPError as e:
            return self._not_found(e)

        instances = {t.id: await store.list_instances(t.id) for t in templates}
        content = build_feed(templates, instances, self.feed_name)
        logger.debug(
            "feed: %d series, %d instance(s), %d bytes",
            len(templates),
            sum(len(v) for v in instances.values()),
            len(content),
        )

        filename = f"series-{series_id}.ics" if series_id else "series.ics"
        return self._calendar_response(content, filename)

    async def handle_series_calendar(self, request: Request) -> Response:
        """Handle GET /series/{series_id}/calendar.ics.

        Returns:
            text/calendar response with the series as one recurring VEVENT
        """
        series_id = request.path_params["series_id"]
        try:
            template = await self.service.store.get_series(series_id)
        except HTTPError as e:
            return self._not_found(e)

        try:
            content = build_series_calendar(template)
        except ValueError as e:
            logger.warning("cannot export series %s: %s", series_id, e)
            return Response(
                content=f"Cannot export series: {e}",
                status_code=422,
                media_type="text/plain",
            )
        return self._calendar_response(content, f"series-{series_id}-rule.ics")
