"""
Error taxonomy for the analytics service.

Every error carries the HTTP status code the API layer should surface, so
route handlers never need to translate service failures themselves.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-104)

TODO:
- None
"""


class AnalyticsError(Exception):
    """Base class for errors raised by the analytics service.

    Attributes:
        message: Human-readable description returned to the caller.
        status_code: HTTP status code the API layer responds with.
    """

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AnalyticsError):
    """Caller-supplied identifiers, dates, or period keys are invalid."""

    status_code = 400


class NotFoundError(AnalyticsError):
    """Requested site is neither a user meter nor a catalog profile."""

    status_code = 404


class DependencyError(AnalyticsError):
    """Reading meters, energy records, or orders from storage failed."""

    status_code = 500
