"""
User domain model
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


DEFAULT_COEFFICIENT = 1.0


@dataclass
class User:
    """
    User domain model - storage-agnostic representation

    Storage: PostgreSQL (users table)

    `username` is the natural key. `coefficient` is the investment
    credibility multiplier; only coefficient writes touch it (and always
    append a CoefficientHistoryEntry alongside).
    """
    username: str

    # Coins (non-negative integers)
    balance: int = 10000
    total_invested: int = 0
    total_dividends: int = 0

    # Credibility
    coefficient: float = DEFAULT_COEFFICIENT
    coefficient_updated_at: Optional[datetime] = None

    # Timestamps
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.username or not self.username.strip():
            raise ValueError("username is required")
        self.username = self.username.strip()
        if self.balance < 0:
            raise ValueError(f"balance must be non-negative, got {self.balance}")

    def can_afford(self, amount: int) -> bool:
        """Check if the user can commit `amount` coins"""
        return 0 < amount <= self.balance
