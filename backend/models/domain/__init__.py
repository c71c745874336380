"""
Domain Models - Storage-agnostic data structures

These models represent the core domain entities independent of storage layer.
The engine and API operate on these models, not raw database rows.

Architecture:
- Domain models are pure Python objects (dataclasses)
- Storage details (PostgreSQL) are abstracted via repositories
- Business logic operates on these models, not database rows
"""

from .user import User, DEFAULT_COEFFICIENT
from .content import Content, InvestmentEvent
from .investment import Investment, DividendRecord
from .coefficient_history import CoefficientHistoryEntry, CoefficientReason

__all__ = [
    'User',
    'DEFAULT_COEFFICIENT',
    'Content',
    'InvestmentEvent',
    'Investment',
    'DividendRecord',
    'CoefficientHistoryEntry',
    'CoefficientReason',
]
