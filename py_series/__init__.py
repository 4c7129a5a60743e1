"""Materialization of recurring event series."""

from .client import SeriesClient
from .describe import describe, describe_bounds
from .generator import generate_occurrences
from .models import EventInstance, SeriesStatus, SeriesTemplate
from .reconciler import reconcile_extend, reconcile_initial, reconcile_regenerate
from .rule import RecurrenceRule
from .server import Handler, create_app
from .service import SeriesService
from .store import LocalSeriesStore

__version__ = "0.1.0"

__all__ = [
    "SeriesClient",
    "describe",
    "describe_bounds",
    "generate_occurrences",
    "EventInstance",
    "SeriesStatus",
    "SeriesTemplate",
    "reconcile_extend",
    "reconcile_initial",
    "reconcile_regenerate",
    "RecurrenceRule",
    "Handler",
    "create_app",
    "SeriesService",
    "LocalSeriesStore",
]
