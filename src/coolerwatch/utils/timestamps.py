"""Timestamp helpers for telemetry and persisted records."""

from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser as dateutil_parser


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def normalize_timestamp(
    value: Any,
    assume_utc: bool = True,
) -> datetime:
    """Convert the timestamp forms samplers send to an aware UTC datetime.

    Handles:
    - int/float: Unix epoch (milliseconds detected by magnitude)
    - str: ISO 8601 or anything dateutil can parse
    - datetime: converted to UTC, naive values treated per assume_utc

    Args:
        value: Timestamp in one of the supported forms
        assume_utc: If True, naive timestamps are taken as UTC

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        ValueError: If value cannot be parsed as a timestamp

    Example:
        >>> normalize_timestamp(1705084800000)
        datetime.datetime(2024, 1, 12, 18, 40, tzinfo=datetime.timezone.utc)
    """
    if isinstance(value, bool):
        raise ValueError(f"Cannot parse timestamp: {value!r} (type: bool)")

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        # Embedded samplers report epoch milliseconds
        if value > 1e12:
            value = value / 1000
        return datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        try:
            dt = dateutil_parser.parse(value)
        except (ValueError, OverflowError) as e:
            raise ValueError(f"Cannot parse timestamp: {value!r} ({e})")
    else:
        raise ValueError(f"Cannot parse timestamp: {value!r} (type: {type(value).__name__})")

    if dt.tzinfo is None:
        if assume_utc:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    return dt.astimezone(timezone.utc)


def hours_between(start: datetime, end: datetime) -> float:
    """Wall-clock hours elapsed from start to end."""
    return (end - start).total_seconds() / 3600.0


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    """ISO string for log context, None passes through."""
    return value.isoformat() if value is not None else None
