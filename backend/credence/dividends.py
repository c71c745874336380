"""
Dividend Distributor
====================

Computes, before a new investment is recorded, what each existing
investment earns from it:

    pool       = new_amount * dividend_fraction
    dividend_i = floor(pool * share_i)

Zero payouts are dropped. The sum never exceeds floor(pool). Nothing is
applied here; the ledger writer applies the whole list in one transaction.
"""

import logging
import math
from typing import List, Sequence

from .errors import ContentNotFoundError, InvalidAmountError
from .ports import ContentRepository
from .shares import EffectiveShareCalculator
from .types import DividendPayout, EffectiveShare, EngineParameters

logger = logging.getLogger(__name__)


def allocate_dividends(shares: Sequence[EffectiveShare], pool: float) -> List[DividendPayout]:
    """Split a pool over an effective-share table. Pure function."""
    budget = math.floor(pool)
    payouts = []
    paid = 0
    for share in shares:
        amount = min(math.floor(pool * share.share), budget - paid)
        if amount <= 0:
            continue
        paid += amount
        payouts.append(DividendPayout(
            username=share.username,
            amount=amount,
            share=share.share,
            coefficient=share.coefficient,
            effective_amount=share.effective_amount,
        ))
    return payouts


class DividendDistributor:
    """Reads the pre-investment share table and prices the dividends."""

    def __init__(
        self,
        contents: ContentRepository,
        calculator: EffectiveShareCalculator,
        params: EngineParameters,
    ):
        self.contents = contents
        self.calculator = calculator
        self.params = params

    def dividend_pool(self, new_investment_amount: int) -> float:
        return new_investment_amount * self.params.dividend_fraction

    async def distribute_dividends(
        self, content_id: int, new_investment_amount: int
    ) -> List[DividendPayout]:
        """
        Dividends owed to existing investors of `content_id`.

        Must be called before the new investment is appended. Returns [] for
        content without prior investors; that pool is not paid to anyone.
        """
        if isinstance(new_investment_amount, bool) or not isinstance(new_investment_amount, int) \
                or new_investment_amount <= 0:
            raise InvalidAmountError(new_investment_amount)

        content = await self.contents.get(content_id)
        if content is None:
            raise ContentNotFoundError(content_id)

        shares = await self.calculator.effective_shares(content_id)
        if not shares:
            logger.info(f"Content {content_id} has no prior investors, no dividends paid")
            return []

        pool = self.dividend_pool(new_investment_amount)
        payouts = allocate_dividends(shares, pool)
        logger.info(
            f"Content {content_id}: pool {pool:.2f} from {new_investment_amount} coins, "
            f"{sum(p.amount for p in payouts)} paid over {len(payouts)} investments"
        )
        return payouts
