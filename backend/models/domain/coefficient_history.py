"""
Coefficient history domain model
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class CoefficientReason(str, Enum):
    """Why a coefficient changed"""
    INVESTMENT_MADE = "investment_made"
    ATTRACTED_INVESTMENT = "attracted_investment"
    BATCH_UPDATE = "batch_update"
    MANUAL = "manual"


@dataclass(frozen=True)
class CoefficientHistoryEntry:
    """
    Append-only audit record of a coefficient write.

    Storage: PostgreSQL (coefficient_history table)
    """
    username: str
    old_coefficient: float
    new_coefficient: float
    reason: CoefficientReason
    performance_score: Optional[float]
    created_at: datetime
    id: Optional[int] = None

    @property
    def delta(self) -> float:
        return self.new_coefficient - self.old_coefficient

    def to_dict(self) -> dict:
        return {
            "username": self.username,
            "oldCoefficient": self.old_coefficient,
            "newCoefficient": self.new_coefficient,
            "reason": self.reason.value,
            "performanceScore": self.performance_score,
            "createdAt": self.created_at.isoformat(),
        }
