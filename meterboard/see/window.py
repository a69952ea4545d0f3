"""
Request windows and UTC date helpers.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from meterboard.errors import ValidationError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def utc_midnight(moment: datetime) -> datetime:
    """UTC midnight starting the day that contains ``moment``."""
    moment = _as_utc(moment)
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def next_utc_midnight(moment: datetime) -> datetime:
    """UTC midnight starting the day after ``moment``."""
    return utc_midnight(_as_utc(moment) + timedelta(days=1))


def trailing_window(days: int = 30, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """
    Trailing window ending at the next full UTC day boundary.

    The start is the UTC midnight of the day ``days * 24h`` before ``now``, so
    the window spans ``days + 1`` calendar days and always covers all of today.
    """
    now = _as_utc(now) if now is not None else utc_now()
    start = utc_midnight(now - timedelta(days=days))
    end = next_utc_midnight(now)
    return start, end


def next_quantity_start(now: Optional[datetime] = None) -> datetime:
    """Midnight-aligned start for a subscription change: today if exactly midnight, else tomorrow."""
    now = _as_utc(now) if now is not None else utc_now()
    midnight = utc_midnight(now)
    if now > midnight:
        midnight = midnight + timedelta(days=1)
    return midnight


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into an aware UTC datetime."""
    if isinstance(value, datetime):
        return _as_utc(value)
    try:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        if "T" not in text:
            text = text + "T00:00:00+00:00"
        return _as_utc(datetime.fromisoformat(text))
    except (AttributeError, ValueError):
        raise ValidationError("Invalid date format") from None


def format_date(value: Union[str, datetime, None]) -> str:
    """Long-form UTC date for display, e.g. "October 19, 2026"."""
    if not value:
        return ""
    try:
        moment = parse_timestamp(value)
    except ValidationError:
        return ""
    return f"{moment.strftime('%B')} {moment.day}, {moment.year}"

