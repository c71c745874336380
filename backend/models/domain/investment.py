"""
Investment and dividend ledger records
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Investment:
    """
    A single commitment of coins into a content.

    Storage: PostgreSQL (investments table)

    Immutable once recorded. `effective_amount` and `coefficient_at_time`
    capture the investor's coefficient when the investment was made; share
    computation deliberately ignores them and uses current coefficients.
    """
    id: Optional[int]
    username: str
    content_id: int
    amount: int
    effective_amount: float
    coefficient_at_time: float
    created_at: datetime


@dataclass(frozen=True)
class DividendRecord:
    """
    Dividend paid to an earlier investor when new money arrived.

    Storage: PostgreSQL (dividends table)
    """
    id: Optional[int]
    content_id: int
    recipient: str
    from_username: str
    amount: int
    investment_id: Optional[int]
    created_at: datetime
