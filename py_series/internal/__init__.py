"""Low-level helpers: calendar arithmetic and error types."""

from . import dates
from .internal import DateError, HTTPError, RuleError

__all__ = [
    "dates",
    "DateError",
    "HTTPError",
    "RuleError",
]
