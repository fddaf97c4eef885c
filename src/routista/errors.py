"""Exception hierarchy for route generation."""
from __future__ import annotations


class RoutistaError(Exception):
    """Base class for all routista failures."""


class InputError(RoutistaError):
    """The caller's input cannot produce a route. Not retryable."""


class NoShapeFound(InputError):
    def __init__(self, message: str = "No shape found in image"):
        super().__init__(message)


class NoSignificantShape(InputError):
    def __init__(self, message: str = "No significant shape found in image (noise only?)"):
        super().__init__(message)


class ServiceError(RoutistaError):
    """A required call to the routing service failed or returned garbage.

    Fatal for the whole generation: partial chunk results are never merged
    around a failed chunk.
    """
