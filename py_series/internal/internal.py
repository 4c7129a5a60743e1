"""Error types shared by the engine, the store and the HTTP layer."""

from __future__ import annotations


class RuleError(ValueError):
    """A recurrence rule or its generation bounds are malformed.

    Raised once, at construction or deserialization time. Callers translate it
    into a validation message; the generator never sees an invalid rule.
    """


class DateError(ValueError):
    """A calendar date string is not a valid ``YYYY-MM-DD`` value."""


class HTTPError(Exception):
    """Error with an HTTP status code.

    The store and the service raise it for conditions the HTTP layer reports
    verbatim (unknown series, state conflicts).
    """

    def __init__(self, code: int, err: Exception | None = None):
        self.code = code
        self.err = err
        super().__init__(str(self))

    def __str__(self) -> str:
        from http import HTTPStatus

        try:
            text = HTTPStatus(self.code).phrase
        except ValueError:
            text = "Unknown"

        s = f"{self.code} {text}"
        if self.err:
            return f"{s}: {self.err}"
        return s

    @property
    def message(self) -> str:
        """Message without the status prefix, for JSON error bodies."""
        if self.err:
            return str(self.err)
        return str(self)
