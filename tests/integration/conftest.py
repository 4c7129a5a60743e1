"""Shared fixtures for store, service and HTTP tests."""

import pytest

from py_series.config import SeriesConfig
from py_series.service import SeriesService
from py_series.store import LocalSeriesStore

OPEN_CLIMB = {
    "name": "Open Climb",
    "startDate": "2026-01-06",
    "recurrenceRule": {"frequency": "weekly", "daysOfWeek": [2, 4]},
    "timeStart": "18:00",
    "timeEnd": "20:00",
    "location": "Hall A",
    "capacity": 20,
}


@pytest.fixture
def open_climb():
    """A weekly Tuesday/Thursday series starting Tuesday 2026-01-06."""
    return dict(OPEN_CLIMB, recurrenceRule=dict(OPEN_CLIMB["recurrenceRule"]))


@pytest.fixture
def store(tmp_path):
    return LocalSeriesStore(tmp_path)


@pytest.fixture
def service(store, tmp_path):
    """Service with short horizons: 1 month initial, 2 months extension."""
    config = SeriesConfig(
        data_dir=tmp_path,
        initial_horizon_months=1,
        extend_horizon_months=2,
        regenerate_horizon_months=1,
        feed_name="Club events",
    )
    return SeriesService(store, config)
