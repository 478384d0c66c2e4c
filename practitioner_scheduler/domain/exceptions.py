"""
Domain-specific exception hierarchy for the practitioner scheduler.
"""

from typing import Optional


class SchedulingError(Exception):
    """Base class for all application-level errors."""


class InvalidTimeZone(SchedulingError, ValueError):
    """Raised when a timezone identifier is not a recognised IANA zone."""


class InvalidTimestamp(SchedulingError, ValueError):
    """Raised when a value cannot be parsed as a date-time."""


class InvalidInterval(SchedulingError, ValueError):
    """Raised when an interval does not start strictly before it ends."""


class MalformedInputStructure(SchedulingError):
    """Raised when an input collection does not have the expected shape."""


class UpstreamFetchError(SchedulingError):
    """Raised when practice data cannot be fetched or parsed."""

    def __init__(
        self,
        message: str,
        *,
        practitioner_id: Optional[int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.practitioner_id = practitioner_id
        self.start_date = start_date
        self.end_date = end_date

    def __str__(self) -> str:
        message = super().__str__()
        if self.practitioner_id is None:
            return message
        return (
            f"{message} (practitioner {self.practitioner_id}, "
            f"range {self.start_date or '?'} to {self.end_date or '?'})"
        )
