"""Storage for series templates and instances."""

from .backend import SeriesStore
from .fs_backend import LocalSeriesStore

__all__ = [
    "SeriesStore",
    "LocalSeriesStore",
]
