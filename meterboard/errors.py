"""
Structured exceptions for meterboard.
"""

from typing import Any, Optional

UNKNOWN_ERROR = "Unknown error"
INVALID_API_KEY = "Invalid API key. Please check your Metronome API key in settings."


class MeterboardError(Exception):
    """Base exception for all meterboard errors."""
    pass


class UpstreamError(MeterboardError):
    """The billing API call failed or returned a non-success status."""

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        detail: Any = None,
    ):
        self.message = message or UNKNOWN_ERROR
        self.status_code = status_code
        self.detail = detail
        super().__init__(self.message)


class AuthError(UpstreamError):
    """401/403 from the billing API - missing or invalid API key."""

    def __init__(self, status_code: Optional[int] = None, detail: Any = None):
        super().__init__(INVALID_API_KEY, status_code, detail)


class ValidationError(MeterboardError):
    """A caller-supplied amount, threshold or date is unusable."""
    pass


def describe_error(error: BaseException) -> str:
    """Message carried in an error result."""
    if isinstance(error, UpstreamError):
        return error.message
    return str(error) or UNKNOWN_ERROR


def require_positive(value: Any, label: str) -> float:
    """Coerce ``value`` to a float, rejecting non-numeric and non-positive input."""
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number") from None
    if number != number or number <= 0:
        raise ValidationError(f"{label} must be greater than 0")
    return number
