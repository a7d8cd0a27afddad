"""Failures reported by the ride services.

The API layer maps each class to an HTTP status; nothing here knows
about HTTP.
"""


class RideError(Exception):
    """Base class for every guard violation surfaced to a caller."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(RideError):
    """Unknown ride or user."""


class Conflict(RideError):
    """Ride is not in the state the operation requires."""


class Forbidden(RideError):
    """Actor is not allowed to act on this ride."""


class ServiceUnavailable(RideError):
    """A stubbed external dependency is not configured."""
