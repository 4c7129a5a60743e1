"""Runtime configuration.

Values default from environment variables so a deployment can be tuned
without code changes; pass explicit values in tests.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .reconciler import (
    DEFAULT_EXTEND_HORIZON_MONTHS,
    DEFAULT_INITIAL_HORIZON_MONTHS,
    DEFAULT_REGENERATE_HORIZON_MONTHS,
)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        months = int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {value!r}") from e
    if months < 0:
        raise ValueError(f"{name} must not be negative, got {months}")
    return months


@dataclass
class SeriesConfig:
    """Configuration for the series service and its HTTP API."""

    # Storage
    data_dir: Path = field(default_factory=lambda: Path(os.getenv("PY_SERIES_DATA_DIR", ".")))

    # Generation horizons, in months from "today"
    initial_horizon_months: int = field(
        default_factory=lambda: _env_int(
            "PY_SERIES_INITIAL_HORIZON_MONTHS", DEFAULT_INITIAL_HORIZON_MONTHS
        )
    )
    extend_horizon_months: int = field(
        default_factory=lambda: _env_int("PY_SERIES_EXTEND_HORIZON_MONTHS", DEFAULT_EXTEND_HORIZON_MONTHS)
    )
    regenerate_horizon_months: int = field(
        default_factory=lambda: _env_int(
            "PY_SERIES_REGENERATE_HORIZON_MONTHS", DEFAULT_REGENERATE_HORIZON_MONTHS
        )
    )

    # iCalendar feed
    feed_name: str = field(default_factory=lambda: os.getenv("PY_SERIES_FEED_NAME", "Recurring events"))
