"""Tests for the series API client against the app in-process."""

import httpx
import pytest

from py_series.client import ClientConfig, SeriesClient
from py_series.internal import HTTPError
from py_series.server import create_app

pytestmark = pytest.mark.integration


@pytest.fixture
async def api_client(service):
    """Create and cleanup a client talking to the app through ASGI."""
    transport = httpx.ASGITransport(app=create_app(service))
    client = SeriesClient(ClientConfig(base_url="http://testserver"), transport=transport)
    yield client
    await client.close()


@pytest.mark.asyncio
async def test_series_lifecycle(api_client, open_climb):
    """Test create, extend, list and delete through the client."""
    created = await api_client.create_series(open_climb, today="2026-01-06")
    series_id = created["series"]["id"]
    assert len(created["created"]) == 10

    more = await api_client.generate_more(series_id, today="2026-01-06")
    assert len(more["created"]) == 8

    instances = await api_client.list_instances(series_id)
    assert len(instances) == 18

    series = await api_client.list_series()
    assert [s["schedule"] for s in series] == ["Every Tuesday, Thursday"]

    deleted = await api_client.delete_series(series_id, today="2026-01-06")
    assert len(deleted["deletedIds"]) == 18


@pytest.mark.asyncio
async def test_errors_raise_http_error(api_client):
    with pytest.raises(HTTPError) as excinfo:
        await api_client.get_series("nope")
    assert excinfo.value.code == 404
    assert excinfo.value.message == "Series not found: nope"


@pytest.mark.asyncio
async def test_status_and_instance_edits(api_client, open_climb):
    series_id = (await api_client.create_series(open_climb, today="2026-01-06"))["series"]["id"]

    await api_client.pause(series_id)
    with pytest.raises(HTTPError) as excinfo:
        await api_client.regenerate(series_id, today="2026-01-06")
    assert excinfo.value.code == 409
    await api_client.resume(series_id)

    instance_id = (await api_client.list_instances(series_id))[0]["id"]
    edited = await api_client.edit_instance(instance_id, {"timeStart": "19:00"})
    assert edited["isException"] is True
    registered = await api_client.set_registrations(instance_id, 4)
    assert registered["registrationCount"] == 4

    updated = await api_client.update_series(series_id, {"name": "Evening Climb"}, today="2026-01-06")
    assert updated["series"]["name"] == "Evening Climb"
    assert instance_id not in updated["updatedIds"]

    ended = await api_client.end(series_id)
    assert ended["series"]["status"] == "ended"


@pytest.mark.asyncio
async def test_preview_and_feed(api_client, open_climb):
    preview = await api_client.preview(
        {"frequency": "weekly", "daysOfWeek": [2, 4]},
        "2026-01-06",
        max_occurrences=4,
        generate_until="2026-12-31",
    )
    assert preview["dates"] == ["2026-01-06", "2026-01-08", "2026-01-13", "2026-01-15"]
    assert preview["bounds"] == "Starting 2026-01-06, 4 times"

    series_id = (await api_client.create_series(open_climb, today="2026-01-06"))["series"]["id"]
    feed = await api_client.get_feed(series_id)
    assert feed.startswith("BEGIN:VCALENDAR")
    assert feed.count("BEGIN:VEVENT") == 10
