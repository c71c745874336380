"""
Effective-Share Calculator
==========================

Scales every investment of a content by its investor's *current*
coefficient and normalizes:

    effective_i = amount_i * coefficient(investor_i)
    share_i     = effective_i / sum(effective)      (0 when the sum is 0)

The coefficient recorded on the investment at the time it was made is not
used here; shares follow present-day credibility.

Results are cached per (content, coefficient epoch).
"""

import logging
from typing import Dict, List, Mapping, Sequence, Tuple

from models.domain import Investment
from utils.datetime_utils import to_epoch_millis

from .cache import DerivedValueCache
from .errors import CredenceError, ShareComputationError
from .ports import InvestmentRepository, UserRepository
from .scorer import CoefficientScorer
from .types import EffectiveShare

logger = logging.getLogger(__name__)


def build_effective_shares(
    investments: Sequence[Investment],
    coefficients: Mapping[str, float],
) -> List[EffectiveShare]:
    """One EffectiveShare per investment, in input order. Pure function."""
    scaled = []
    total_effective = 0.0
    for investment in investments:
        coefficient = coefficients[investment.username]
        effective = investment.amount * coefficient
        scaled.append((investment, coefficient, effective))
        total_effective += effective

    return [
        EffectiveShare(
            username=investment.username,
            original_amount=investment.amount,
            coefficient=coefficient,
            effective_amount=effective,
            share=effective / total_effective if total_effective > 0 else 0.0,
            investment_date=investment.created_at,
        )
        for investment, coefficient, effective in scaled
    ]


class EffectiveShareCalculator:
    """Builds (and caches) the effective-share table of a content."""

    def __init__(
        self,
        users: UserRepository,
        investments: InvestmentRepository,
        scorer: CoefficientScorer,
        cache: DerivedValueCache,
    ):
        self.users = users
        self.investments = investments
        self.scorer = scorer
        self.cache = cache

    async def coefficient_epoch(self) -> int:
        """Latest coefficient write across all users, epoch millis (0 if none)."""
        return to_epoch_millis(await self.users.get_coefficient_epoch())

    async def snapshot(self, content_id: int) -> Tuple[int, List[EffectiveShare]]:
        """(epoch, shares) for a content, served from cache when the epoch matches."""
        generation = self.cache.share_generation(content_id)
        try:
            epoch = await self.coefficient_epoch()
            cached = self.cache.get_shares(content_id, epoch)
            if cached is not None:
                return epoch, cached

            investments = await self.investments.list_for_content(content_id)
            investments = sorted(investments, key=lambda i: i.created_at)

            coefficients: Dict[str, float] = {}
            for investment in investments:
                if investment.username not in coefficients:
                    coefficients[investment.username] = await self.scorer.current_coefficient(
                        investment.username
                    )
        except ShareComputationError:
            raise
        except CredenceError as e:
            raise ShareComputationError(content_id, e.message) from e
        except Exception as e:
            raise ShareComputationError(content_id, str(e)) from e

        shares = build_effective_shares(investments, coefficients)
        # Not cached if the ledger or a coefficient changed under us
        self.cache.put_shares(content_id, epoch, shares, generation)
        logger.debug(f"Computed {len(shares)} effective shares for content {content_id}")
        return epoch, shares

    async def effective_shares(self, content_id: int) -> List[EffectiveShare]:
        _, shares = await self.snapshot(content_id)
        return shares

    async def user_effective_amount(self, content_id: int, username: str) -> float:
        shares = await self.effective_shares(content_id)
        return sum(s.effective_amount for s in shares if s.username == username)

    async def total_effective_value(self, username: str) -> float:
        """Sum of a user's effective amounts across every content they hold."""
        try:
            holdings = await self.investments.list_for_user(username)
        except Exception as e:
            raise ShareComputationError("*", str(e)) from e

        total = 0.0
        for content_id in sorted({i.content_id for i in holdings}):
            total += await self.user_effective_amount(content_id, username)
        return total
