"""
Models package.

Domain models live in models.domain; this package re-exports them so
callers can write `from models import User`.
"""

from .domain import (
    User,
    Content,
    InvestmentEvent,
    Investment,
    DividendRecord,
    CoefficientHistoryEntry,
    CoefficientReason,
)

__all__ = [
    'User',
    'Content',
    'InvestmentEvent',
    'Investment',
    'DividendRecord',
    'CoefficientHistoryEntry',
    'CoefficientReason',
]
