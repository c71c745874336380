"""
Credence - Coefficient-Weighted Dividend & Effective-Share Engine
=================================================================

Users invest coins into content. Part of each new investment is paid out to
earlier investors in proportion to their *effective* share: raw amount
scaled by the investor's credibility coefficient. The coefficient is
re-scored from how much follow-on money the investor's past picks attracted.

ARCHITECTURE:
    POST /api/invest
        -> InvestmentService.invest
             -> DividendDistributor  (reads EffectiveShareCalculator)
             -> InvestmentRepository.record_investment (one transaction)
             -> CoefficientUpdateTrigger (re-score, then clear cache)

    CoefficientScorer         - track record -> bounded coefficient
    EffectiveShareCalculator  - investments x current coefficients -> shares
    DividendDistributor       - shares x pool -> integer payouts
    DerivedValueCache         - coefficient TTL cache + epoch-keyed shares
    CoefficientUpdateTrigger  - all coefficient writes (+ batch job)

Storage is reached only through the protocols in `credence.ports`.
"""

from .types import (
    EngineParameters,
    InvestmentSample,
    ScoreBreakdown,
    EffectiveShare,
    DividendPayout,
    FailedUpdate,
    CoefficientUpdateReport,
    InvestmentOutcome,
    UserSummary,
    ContentSharesView,
    Holding,
)
from .errors import (
    CredenceError,
    ValidationError,
    InvalidAmountError,
    UserNotFoundError,
    ContentNotFoundError,
    InsufficientBalanceError,
    ScoreComputationError,
    ShareComputationError,
    StorageError,
)
from .ports import UserRepository, ContentRepository, InvestmentRepository
from .cache import DerivedValueCache, CachedCoefficient
from .scorer import CoefficientScorer, compute_score
from .shares import EffectiveShareCalculator, build_effective_shares
from .dividends import DividendDistributor, allocate_dividends
from .trigger import CoefficientUpdateTrigger
from .engine import InvestmentService

__all__ = [
    # Types
    'EngineParameters',
    'InvestmentSample',
    'ScoreBreakdown',
    'EffectiveShare',
    'DividendPayout',
    'FailedUpdate',
    'CoefficientUpdateReport',
    'InvestmentOutcome',
    'UserSummary',
    'ContentSharesView',
    'Holding',

    # Errors
    'CredenceError',
    'ValidationError',
    'InvalidAmountError',
    'UserNotFoundError',
    'ContentNotFoundError',
    'InsufficientBalanceError',
    'ScoreComputationError',
    'ShareComputationError',
    'StorageError',

    # Storage protocols
    'UserRepository',
    'ContentRepository',
    'InvestmentRepository',

    # Components
    'DerivedValueCache',
    'CachedCoefficient',
    'CoefficientScorer',
    'compute_score',
    'EffectiveShareCalculator',
    'build_effective_shares',
    'DividendDistributor',
    'allocate_dividends',
    'CoefficientUpdateTrigger',
    'InvestmentService',
]
