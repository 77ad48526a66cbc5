"""
Shared decoding helpers for backend payloads
"""

import math
from datetime import datetime, timezone
from typing import Any, Optional


# Epoch seconds this large would fall after the year 5000
EPOCH_MILLIS_THRESHOLD = 1e11


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a backend timestamp into an aware UTC datetime

    Accepts ISO-8601 strings (with or without a trailing 'Z'), datetime
    objects and Unix epoch numbers. Numbers of 1e11 or more are epoch
    milliseconds, smaller ones epoch seconds. Naive values are taken as UTC.

    Returns:
        Aware datetime, or None if the value is missing or unparsable
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        if abs(value) >= EPOCH_MILLIS_THRESHOLD:
            value = value / 1000
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_float(value: Any) -> Optional[float]:
    """Parse a finite float, or None"""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_latitude(value: Any) -> Optional[float]:
    number = parse_float(value)
    if number is None or not -90.0 <= number <= 90.0:
        return None
    return number


def parse_longitude(value: Any) -> Optional[float]:
    number = parse_float(value)
    if number is None or not -180.0 <= number <= 180.0:
        return None
    return number


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime the way the backend expects it"""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')
