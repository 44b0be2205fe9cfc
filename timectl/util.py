"""Utility constants and helpers for timectl.

Time unit constants represent durations in seconds. Instants are Unix
timestamps in seconds throughout the API.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Literal
from zoneinfo import ZoneInfo

from dateutil.parser import isoparse

# Time unit constants (all values in seconds)
SECOND = 1
MINUTE = 60
HOUR = 3600
DAY = 86400
WEEK = 604800

# Bounds used for open-ended slices
MIN_TIMESTAMP = -(2**63)
MAX_TIMESTAMP = 2**63 - 1


def coerce_time(value: Any, edge: Literal["start", "end"] = "start") -> int:
    """Convert a time bound to integer seconds (Unix timestamp).

    Accepts:
    - int: Passed through as-is (Unix timestamp)
    - datetime: Must be timezone-aware, converted to timestamp
    - date: Midnight UTC of that day for a start bound, midnight UTC of
      the following day for an end bound (ends are exclusive)

    Raises:
        TypeError: If value is an unsupported type or naive datetime
    """
    if isinstance(value, int):
        return value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            raise TypeError(
                f"Time {edge} bound must be a timezone-aware datetime.\n"
                f"Got naive datetime: {value!r}\n"
                f"Hint: Add timezone info:\n"
                f"  dt = datetime(..., tzinfo=timezone.utc)"
            )
        return int(value.timestamp())
    if isinstance(value, date):
        if edge == "end":
            value = value + timedelta(days=1)
        dt = datetime.combine(value, time.min, tzinfo=timezone.utc)
        return int(dt.timestamp())
    raise TypeError(
        f"Time {edge} bound must be int, datetime, or date.\n"
        f"Got {type(value).__name__!r}: {value!r}"
    )


def coerce_duration(value: int | timedelta) -> int:
    """Convert a duration to integer seconds."""
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    if isinstance(value, int):
        return value
    raise TypeError(
        f"Duration must be int seconds or timedelta.\n"
        f"Got {type(value).__name__!r}: {value!r}"
    )


def parse_datetime(text: str, tz: str = "UTC") -> datetime:
    """Parse an ISO 8601 / RFC 3339 string into an aware datetime.

    Strings without a UTC offset are interpreted in ``tz``.
    """
    dt = isoparse(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo(tz))
    return dt


def parse_time(text: str, tz: str = "UTC") -> int:
    """Parse an ISO 8601 / RFC 3339 string into a Unix timestamp."""
    return int(parse_datetime(text, tz).timestamp())
