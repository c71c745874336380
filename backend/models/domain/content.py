"""
Content domain model
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class InvestmentEvent:
    """One entry of a content's append-only investment log."""
    investor: str
    amount: int
    timestamp: datetime
    total_investment_after: int

    def to_dict(self) -> dict:
        return {
            "investor": self.investor,
            "amount": self.amount,
            "timestamp": self.timestamp.isoformat(),
            "totalInvestmentAfter": self.total_investment_after,
        }


@dataclass
class Content:
    """
    Content domain model - storage-agnostic representation

    Storage: PostgreSQL (contents table)

    Investment statistics are written only by the investment ledger
    (InvestmentRepository.record_investment); everything else treats them
    as read-only.
    """
    id: Optional[int]
    author: str
    title: str = ""

    # Investment statistics
    total_investment: int = 0
    investor_count: int = 0
    average_investment: float = 0.0
    investment_history: List[InvestmentEvent] = field(default_factory=list)

    # Timestamps
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def has_investors(self) -> bool:
        return self.total_investment > 0
