"""
Datetime helpers shared by the engine, repositories and API.

All timestamps are timezone-aware UTC. asyncpg returns naive datetimes for
`timestamp` columns and aware ones for `timestamptz`; both are normalized
here before any arithmetic.
"""
from datetime import datetime, timezone
from typing import Optional
import logging

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def utc_now() -> datetime:
    """Current time as an aware UTC datetime (default engine clock)."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    Handles:
    - None -> None
    - naive datetime -> assumed UTC
    - aware datetime -> converted to UTC
    - ISO string -> parsed, then normalized
    """
    if value is None:
        return None

    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            logger.warning(f"Failed to parse datetime string '{value}'")
            return None

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(earlier: datetime, later: datetime) -> float:
    """Fractional days from `earlier` to `later` (negative if reversed)."""
    return (ensure_utc(later) - ensure_utc(earlier)).total_seconds() / SECONDS_PER_DAY


def to_epoch_millis(value: Optional[datetime]) -> int:
    """Epoch milliseconds, 0 for None."""
    if value is None:
        return 0
    return int(ensure_utc(value).timestamp() * 1000)


def from_epoch_millis(millis: int) -> Optional[datetime]:
    """Inverse of to_epoch_millis; 0 maps back to None."""
    if not millis:
        return None
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    value = ensure_utc(value)
    return value.isoformat() if value else None
