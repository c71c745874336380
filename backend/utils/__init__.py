"""
Utility functions
"""
from .datetime_utils import (
    utc_now,
    ensure_utc,
    days_between,
    to_epoch_millis,
    from_epoch_millis,
    isoformat_or_none,
)

__all__ = [
    'utc_now',
    'ensure_utc',
    'days_between',
    'to_epoch_millis',
    'from_epoch_millis',
    'isoformat_or_none',
]
