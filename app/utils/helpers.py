"""
Helper utilities
"""
from datetime import datetime, timezone
from typing import Any, Optional
import math

from dateutil import parser as date_parser


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-ish timestamp into an aware UTC datetime (None if unparseable)"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = date_parser.parse(str(value))
        except (ValueError, OverflowError):
            return None
    if dt.tzinfo is None:
        # Platforms report UTC when no offset is given
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def to_float(value: Any, default: float = 0.0) -> float:
    """Coerce a vendor number (int, float, numeric string) to float"""
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return result if math.isfinite(result) else default


def to_int(value: Any, default: int = 0) -> int:
    """Coerce a vendor count to int"""
    return int(to_float(value, float(default)))


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safely divide two numbers"""
    try:
        return numerator / denominator if denominator != 0 else default
    except (TypeError, ZeroDivisionError):
        return default


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (59.5 -> 60)"""
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


def clamp(value: int, low: int = 0, high: int = 100) -> int:
    """Clamp value into [low, high]"""
    return max(low, min(high, value))
