"""
Core Types for the Coefficient Engine
=====================================

Pure data structures with no algorithms. All computation lives in the
scorer, shares, dividends and trigger modules.

  EngineParameters  - every tunable constant (built from Settings)
  EffectiveShare    - one investment's scaled slice of a content
  DividendPayout    - coins owed to an earlier investor
  ScoreBreakdown    - scorer output with its intermediate terms
  CoefficientUpdateReport - explicit succeeded/failed result of re-scoring
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from models.domain import CoefficientHistoryEntry, Investment
from utils.datetime_utils import isoformat_or_none

if TYPE_CHECKING:
    from config.settings import Settings


# =============================================================================
# PARAMETERS
# =============================================================================

@dataclass(frozen=True)
class EngineParameters:
    """
    Engine constants. Defaults are the production values; bounds and the
    dividend fraction are deployment configuration (see config.Settings).
    """
    # Coefficient bounds
    coefficient_min: float = 0.5
    coefficient_max: float = 3.0

    # Scoring
    coefficient_default: float = 1.0        # zero investments in window
    early_adopter_coefficient: float = 1.1  # 1..(threshold-1) investments
    early_adopter_threshold: int = 3
    scoring_window_days: int = 30
    decay_days: float = 7.0
    good_attraction_rate: float = 0.3
    base_score: float = 0.9
    performance_weight: float = 0.3
    success_weight: float = 0.4
    activity_divisor: float = 10.0
    activity_cap: float = 0.2

    # Batch exponential moving average: new = s*old + (1-s)*fresh
    batch_smoothing: float = 0.9

    # Dividends
    dividend_fraction: float = 0.10

    # Cache
    coefficient_cache_ttl: float = 60.0

    # Views
    history_limit: int = 10

    @classmethod
    def from_settings(cls, settings: 'Settings') -> 'EngineParameters':
        return cls(
            coefficient_min=settings.coefficient_min,
            coefficient_max=settings.coefficient_max,
            coefficient_default=settings.coefficient_default,
            early_adopter_coefficient=settings.early_adopter_coefficient,
            early_adopter_threshold=settings.early_adopter_threshold,
            scoring_window_days=settings.scoring_window_days,
            decay_days=settings.decay_days,
            good_attraction_rate=settings.good_attraction_rate,
            batch_smoothing=settings.batch_smoothing,
            dividend_fraction=settings.dividend_fraction,
            coefficient_cache_ttl=settings.coefficient_cache_ttl,
            history_limit=settings.history_limit,
        )

    def clamp(self, coefficient: float) -> float:
        """Clamp a coefficient into [coefficient_min, coefficient_max]."""
        return max(self.coefficient_min, min(self.coefficient_max, coefficient))


# =============================================================================
# SCORING
# =============================================================================

@dataclass(frozen=True)
class InvestmentSample:
    """An investment inside the scoring window plus the money that followed it."""
    amount: int
    subsequent_amount: int
    created_at: datetime

    @property
    def attraction_rate(self) -> float:
        if self.amount <= 0:
            return 0.0
        return self.subsequent_amount / self.amount


@dataclass(frozen=True)
class ScoreBreakdown:
    """Scorer result with every intermediate term (for history and debugging)."""
    score: float
    average_performance: float = 0.0
    success_rate: float = 0.0
    activity_bonus: float = 0.0
    investment_count: int = 0
    good_investments: int = 0


# =============================================================================
# SHARES & DIVIDENDS
# =============================================================================

@dataclass(frozen=True)
class EffectiveShare:
    """
    One investment's weight inside a content.

    Derived, never persisted. `share` = effective_amount / sum of all
    effective amounts of the content (0 when that sum is 0).
    """
    username: str
    original_amount: int
    coefficient: float
    effective_amount: float
    share: float
    investment_date: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "originalAmount": self.original_amount,
            "coefficient": self.coefficient,
            "effectiveAmount": self.effective_amount,
            "share": self.share,
            "investmentDate": isoformat_or_none(self.investment_date),
        }


@dataclass(frozen=True)
class DividendPayout:
    """Coins owed to one earlier investor from a new investment's pool."""
    username: str
    amount: int
    share: float = 0.0
    coefficient: float = 1.0
    effective_amount: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"username": self.username, "amount": self.amount}


# =============================================================================
# COEFFICIENT UPDATES
# =============================================================================

@dataclass(frozen=True)
class FailedUpdate:
    """A user whose coefficient could not be re-scored."""
    username: str
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"username": self.username, "error": self.error}


@dataclass
class CoefficientUpdateReport:
    """
    Outcome of re-scoring a set of users (trigger or batch job).

    Per-user failures never abort the run; they land in `failed`.
    """
    succeeded: List[CoefficientHistoryEntry] = field(default_factory=list)
    failed: List[FailedUpdate] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed

    def entry_for(self, username: str) -> Optional[CoefficientHistoryEntry]:
        for entry in self.succeeded:
            if entry.username == username:
                return entry
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": [entry.to_dict() for entry in self.succeeded],
            "failed": [failure.to_dict() for failure in self.failed],
        }


# =============================================================================
# SERVICE RESULTS
# =============================================================================

@dataclass
class InvestmentOutcome:
    """Everything the investment endpoint reports back."""
    investment: Investment
    new_balance: int
    user_coefficient: float
    dividends: List[DividendPayout]
    coefficient_report: CoefficientUpdateReport

    @property
    def effective_amount(self) -> float:
        return self.investment.effective_amount

    @property
    def message(self) -> str:
        paid = sum(d.amount for d in self.dividends)
        if paid:
            return (
                f"Invested {self.investment.amount} coins; "
                f"{paid} coins paid as dividends to {len(self.dividends)} earlier investments"
            )
        return f"Invested {self.investment.amount} coins"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "newBalance": self.new_balance,
            "userCoefficient": self.user_coefficient,
            "effectiveAmount": self.effective_amount,
            "dividendsDistributed": [d.to_dict() for d in self.dividends],
            "message": self.message,
        }


@dataclass
class UserSummary:
    """A user's coefficient, balances and recent coefficient history."""
    username: str
    current_coefficient: float
    balance: int
    total_invested: int
    total_dividends: int
    total_effective_value: float
    coefficient_history: List[CoefficientHistoryEntry]
    last_updated: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "currentCoefficient": self.current_coefficient,
            "balance": self.balance,
            "totalInvested": self.total_invested,
            "totalDividends": self.total_dividends,
            "totalEffectiveValue": self.total_effective_value,
            "coefficientHistory": [entry.to_dict() for entry in self.coefficient_history],
            "lastUpdated": isoformat_or_none(self.last_updated),
        }


@dataclass
class ContentSharesView:
    """Effective-share table of one content."""
    content_id: int
    shares: List[EffectiveShare]
    last_updated: Optional[datetime]

    @property
    def total_shares(self) -> float:
        return sum(s.effective_amount for s in self.shares)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contentId": self.content_id,
            "shares": [s.to_dict() for s in self.shares],
            "totalShares": self.total_shares,
            "lastUpdated": isoformat_or_none(self.last_updated),
        }


@dataclass
class Holding:
    """A user's position in one content."""
    content_id: int
    content_title: str
    content_author: str
    total_invested: int
    effective_amount: float
    current_share: float  # percent, 2 decimals
    total_content_investment: int
    total_dividends: int
    first_invested_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contentId": self.content_id,
            "contentTitle": self.content_title,
            "contentAuthor": self.content_author,
            "totalInvested": self.total_invested,
            "effectiveAmount": self.effective_amount,
            "currentShare": self.current_share,
            "totalContentInvestment": self.total_content_investment,
            "totalDividends": self.total_dividends,
            "firstInvestedAt": isoformat_or_none(self.first_invested_at),
        }
