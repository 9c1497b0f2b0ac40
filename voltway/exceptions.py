"""Exception hierarchy for the station backend."""
from __future__ import annotations


class StationError(Exception):
    """Base exception for all station backend errors."""


class ValidationError(StationError):
    """Producer update rejected (missing required field or invalid value)."""


class InternalError(StationError):
    """Unexpected failure while applying an update."""


class TransportError(StationError):
    """A push to one subscriber failed (closed channel or full queue)."""

    def __init__(self, message: str, *, subscriber_id: str = "") -> None:
        self.subscriber_id = subscriber_id
        super().__init__(message)
