"""HTTP API for recurring event series."""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from typing import Any

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.responses import Response as StarletteResponse
from starlette.routing import Route

from .describe import describe, describe_bounds
from .generator import generate_occurrences
from .ics_feed import ICSFeedHandler
from .internal import DateError, HTTPError, RuleError
from .internal import dates
from .models import SeriesStatus, SeriesTemplate
from .rule import RecurrenceRule
from .service import SeriesService

Endpoint = Callable[[Request], Awaitable[StarletteResponse]]


def _error(code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=code)


def series_view(template: SeriesTemplate) -> dict[str, Any]:
    """Template document plus its human-readable schedule."""
    data = template.to_dict()
    data["schedule"] = describe(template.rule)
    data["bounds"] = describe_bounds(template.start_date, template.end_date, template.max_occurrences)
    return data


async def read_json(request: Request) -> dict[str, Any]:
    """Parse a JSON object request body; an empty body is an empty object.

    Raises:
        HTTPError: If the body is not a JSON object (400)
    """
    body = await request.body()
    if not body:
        return {}
    try:
        data = json.loads(body)
    except ValueError as e:
        raise HTTPError(400, Exception(f"invalid JSON body: {e}")) from e
    if not isinstance(data, dict):
        raise HTTPError(400, Exception("request body must be a JSON object"))
    return data


def query_today(request: Request) -> str | None:
    """Optional ``?today=YYYY-MM-DD`` override of the reference date.

    Raises:
        DateError: If the value is not a valid date
    """
    today = request.query_params.get("today")
    if today:
        dates.parse_date(today)
    return today or None


class Handler:
    """Series API HTTP handler."""

    def __init__(self, service: SeriesService, debug: bool = False):
        """Initialize handler.

        Args:
            service: Series service backing every endpoint
            debug: Enable debug logging of requests and responses
        """
        self.service = service
        self.ics_feed_handler = ICSFeedHandler(service)
        self.debug = debug

    async def handle(self, request: Request, endpoint: Endpoint) -> StarletteResponse:
        """Run an endpoint, translating errors to JSON responses.

        Args:
            request: Starlette request
            endpoint: Endpoint coroutine

        Returns:
            Starlette response
        """
        if self.debug:
            from .debug import log_request

            # Read and cache the request body; it can only be received once
            request_body = await request.body()
            log_request(request.method, str(request.url.path), dict(request.headers.items()), request_body)

            async def receive():  # type: ignore[no-untyped-def]
                return {"type": "http.request", "body": request_body}

            request = Request(scope=request.scope, receive=receive)

        try:
            response = await endpoint(request)
        except HTTPError as e:
            response = _error(e.code, e.message)
        except (RuleError, DateError) as e:
            response = _error(400, str(e))

        if self.debug:
            await self._log_response(response)
        return response

    def route(self, path: str, endpoint: Endpoint, methods: list[str]) -> Route:
        """Route whose requests go through :meth:`handle`."""

        async def app(request: Request) -> StarletteResponse:
            return await self.handle(request, endpoint)

        return Route(path, app, methods=methods)

    async def list_series(self, request: Request) -> StarletteResponse:
        templates = await self.service.store.list_series()
        return JSONResponse({"series": [series_view(t) for t in templates]})

    async def create_series(self, request: Request) -> StarletteResponse:
        result = await self.service.create_series(await read_json(request), today=query_today(request))
        return JSONResponse(result.to_dict(), status_code=201)

    async def get_series(self, request: Request) -> StarletteResponse:
        template = await self.service.store.get_series(request.path_params["series_id"])
        return JSONResponse(series_view(template))

    async def update_series(self, request: Request) -> StarletteResponse:
        result = await self.service.update_series(
            request.path_params["series_id"], await read_json(request), today=query_today(request)
        )
        return JSONResponse(result.to_dict())

    async def delete_series(self, request: Request) -> StarletteResponse:
        result = await self.service.delete_series(request.path_params["series_id"], today=query_today(request))
        return JSONResponse(result.to_dict())

    async def generate(self, request: Request) -> StarletteResponse:
        result = await self.service.generate_more(request.path_params["series_id"], today=query_today(request))
        return JSONResponse(result.to_dict())

    async def regenerate(self, request: Request) -> StarletteResponse:
        result = await self.service.regenerate(request.path_params["series_id"], today=query_today(request))
        return JSONResponse(result.to_dict())

    def status_endpoint(self, status: SeriesStatus) -> Endpoint:
        """Endpoint moving a series to ``status``."""

        async def endpoint(request: Request) -> StarletteResponse:
            result = await self.service.set_status(request.path_params["series_id"], status)
            return JSONResponse(result.to_dict())

        return endpoint

    async def list_instances(self, request: Request) -> StarletteResponse:
        instances = await self.service.list_instances(request.path_params["series_id"])
        return JSONResponse({"instances": [i.to_dict() for i in instances]})

    async def edit_instance(self, request: Request) -> StarletteResponse:
        instance = await self.service.edit_instance(request.path_params["instance_id"], await read_json(request))
        return JSONResponse(instance.to_dict())

    async def set_registrations(self, request: Request) -> StarletteResponse:
        data = await read_json(request)
        if "count" not in data:
            raise HTTPError(400, Exception("count is required"))
        instance = await self.service.set_registrations(request.path_params["instance_id"], data["count"])
        return JSONResponse(instance.to_dict())

    async def preview(self, request: Request) -> StarletteResponse:
        """Generate dates for an unsaved rule.

        Body: ``recurrenceRule``, ``startDate`` and optionally ``endDate``,
        ``maxOccurrences`` and ``generateUntil`` (defaults to the initial
        horizon from today).
        """
        data = await read_json(request)
        rule = RecurrenceRule.from_dict(data.get("recurrenceRule"))
        start_date = data.get("startDate")
        if not start_date:
            raise RuleError("startDate is required")

        today = query_today(request) or self.service.today()
        generate_until = data.get("generateUntil") or dates.add_months(
            today, self.service.config.initial_horizon_months
        )
        end_date = data.get("endDate") or None
        max_occurrences = data.get("maxOccurrences") or None

        occurrences = generate_occurrences(
            rule,
            start_date,
            end_date,
            max_occurrences,
            generate_until=generate_until,
        )
        return JSONResponse(
            {
                "dates": occurrences,
                "schedule": describe(rule),
                "bounds": describe_bounds(start_date, end_date, max_occurrences),
                "generateUntil": generate_until,
            }
        )

    async def _log_response(self, response: StarletteResponse) -> None:
        """Log an outgoing response for debugging.

        Args:
            response: Starlette response
        """
        from .debug import log_response

        log_response(response.status_code, dict(response.headers.items()), response.body)

    def routes(self) -> list[Route]:
        """All API routes."""
        feed = self.ics_feed_handler
        return [
            self.route("/series", self.list_series, ["GET"]),
            self.route("/series", self.create_series, ["POST"]),
            self.route("/series/{series_id}", self.get_series, ["GET"]),
            self.route("/series/{series_id}", self.update_series, ["PATCH"]),
            self.route("/series/{series_id}", self.delete_series, ["DELETE"]),
            self.route("/series/{series_id}/generate", self.generate, ["POST"]),
            self.route("/series/{series_id}/regenerate", self.regenerate, ["POST"]),
            self.route("/series/{series_id}/pause", self.status_endpoint(SeriesStatus.PAUSED), ["POST"]),
            self.route("/series/{series_id}/resume", self.status_endpoint(SeriesStatus.ACTIVE), ["POST"]),
            self.route("/series/{series_id}/end", self.status_endpoint(SeriesStatus.ENDED), ["POST"]),
            self.route("/series/{series_id}/instances", self.list_instances, ["GET"]),
            self.route("/series/{series_id}/calendar.ics", feed.handle_series_calendar, ["GET"]),
            self.route("/instances/{instance_id}", self.edit_instance, ["PATCH"]),
            self.route("/instances/{instance_id}/registrations", self.set_registrations, ["PUT"]),
            self.route("/preview", self.preview, ["POST"]),
            self.route("/feed.ics", feed.handle_feed_request, ["GET"]),
        ]


def create_app(service: SeriesService, debug: bool = False) -> Starlette:
    """Create a Starlette app for the series API.

    Args:
        service: Series service
        debug: Enable debug logging of requests and responses

    Returns:
        Starlette application
    """
    handler = Handler(service, debug=debug)
    return Starlette(routes=handler.routes())
