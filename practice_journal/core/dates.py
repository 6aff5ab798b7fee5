"""
Calendar helpers pinned to the application timezone.

A practice date is a plain calendar day. "Today" is always computed in
settings.app_timezone rather than the server's local zone, so a log
written late in the evening lands on the same day the user sees.
"""

import zoneinfo
from datetime import date, datetime, timezone
from typing import Optional, Union

from practice_journal.config import get_settings
from practice_journal.core.exceptions import InvalidInputError


def app_timezone() -> zoneinfo.ZoneInfo:
    """Return the configured application timezone."""
    return zoneinfo.ZoneInfo(get_settings().app_timezone)


def today_in_app_timezone(now: Optional[datetime] = None) -> date:
    """
    Get today's calendar date in the application timezone.

    Args:
        now: Aware datetime to convert (defaults to the current UTC time)

    Returns:
        The local calendar date
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(app_timezone()).date()


def parse_iso_date(value: Union[str, date, None], field: str = "date") -> date:
    """
    Parse a YYYY-MM-DD string into a date.

    Raises:
        InvalidInputError: If the value is missing or malformed
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        raise InvalidInputError(f"Missing {field}")
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise InvalidInputError(f"Malformed {field}: {value!r}")


def require_text(value: Optional[str], field: str) -> str:
    """Strip a required text field, rejecting empty values."""
    text = (value or "").strip()
    if not text:
        raise InvalidInputError(f"{field} must not be empty")
    return text
