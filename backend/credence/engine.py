"""
Investment Service
==================

Composition root of the engine. One instance per application; it owns the
derived-value cache, so two services never share cached state.

Investment flow:
  1. validate user, content, amount, balance
  2. under the storage layer's per-content lock:
       price dividends from the pre-investment share table
       resolve the investor's current coefficient
       record everything in one ledger transaction
  3. re-score the investor and co-investors, then clear the cache

Errors in step 2 reject the investment. Errors in step 3 are reported
but the investment stands.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, List, Optional

from models.domain import CoefficientHistoryEntry, Content, User
from utils.datetime_utils import from_epoch_millis, utc_now

from .cache import DerivedValueCache
from .dividends import DividendDistributor
from .errors import (
    ContentNotFoundError,
    InsufficientBalanceError,
    InvalidAmountError,
    UserNotFoundError,
)
from .ports import ContentRepository, InvestmentRepository, UserRepository
from .scorer import CoefficientScorer
from .shares import EffectiveShareCalculator
from .trigger import CoefficientUpdateTrigger
from .types import (
    CoefficientUpdateReport,
    ContentSharesView,
    EngineParameters,
    Holding,
    InvestmentOutcome,
    UserSummary,
)

logger = logging.getLogger(__name__)


class InvestmentService:
    """Wires scorer, calculator, distributor, cache and trigger together."""

    def __init__(
        self,
        users: UserRepository,
        contents: ContentRepository,
        investments: InvestmentRepository,
        params: Optional[EngineParameters] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.users = users
        self.contents = contents
        self.investments = investments
        self.params = params or EngineParameters()
        self.clock = clock

        self.cache = DerivedValueCache(
            coefficient_ttl=self.params.coefficient_cache_ttl,
            clock=clock,
        )
        self.scorer = CoefficientScorer(users, investments, self.cache, self.params, clock)
        self.calculator = EffectiveShareCalculator(users, investments, self.scorer, self.cache)
        self.distributor = DividendDistributor(contents, self.calculator, self.params)
        self.trigger = CoefficientUpdateTrigger(
            users, investments, self.scorer, self.cache, self.params, clock
        )

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def _require_user(self, username: str) -> User:
        user = await self.users.get(username)
        if user is None:
            raise UserNotFoundError(username)
        return user

    async def _require_content(self, content_id: int) -> Content:
        content = await self.contents.get(content_id)
        if content is None:
            raise ContentNotFoundError(content_id)
        return content

    # =========================================================================
    # INVEST
    # =========================================================================

    async def invest(self, username: str, content_id: int, amount: int) -> InvestmentOutcome:
        """Commit `amount` coins from `username` into `content_id`."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError(amount)

        user = await self._require_user(username)
        await self._require_content(content_id)
        if not user.can_afford(amount):
            raise InsufficientBalanceError(username, user.balance, amount)

        async with self.investments.content_lock(content_id):
            # Balance may have moved while waiting for the lock
            user = await self._require_user(username)
            if not user.can_afford(amount):
                raise InsufficientBalanceError(username, user.balance, amount)

            dividends = await self.distributor.distribute_dividends(content_id, amount)
            coefficient = await self.scorer.current_coefficient(username)
            investment = await self.investments.record_investment(
                username=username,
                content_id=content_id,
                amount=amount,
                coefficient=coefficient,
                dividends=dividends,
                at=self.clock(),
            )
            # The ledger moved but the epoch did not; the next holder of the
            # lock must not price from the pre-append table
            self.cache.invalidate_content(content_id)

        logger.info(
            f"{username} invested {amount} into content {content_id} "
            f"(coefficient {coefficient:.4f}, {len(dividends)} dividends)"
        )

        report = await self.trigger.on_investment_committed(content_id, username)

        refreshed = await self._require_user(username)
        return InvestmentOutcome(
            investment=investment,
            new_balance=refreshed.balance,
            user_coefficient=refreshed.coefficient,
            dividends=dividends,
            coefficient_report=report,
        )

    # =========================================================================
    # READ VIEWS
    # =========================================================================

    async def user_summary(self, username: str) -> UserSummary:
        user = await self._require_user(username)
        history: List[CoefficientHistoryEntry] = await self.users.get_coefficient_history(
            username, limit=self.params.history_limit
        )
        total_effective = await self.calculator.total_effective_value(username)
        return UserSummary(
            username=user.username,
            current_coefficient=user.coefficient,
            balance=user.balance,
            total_invested=user.total_invested,
            total_dividends=user.total_dividends,
            total_effective_value=total_effective,
            coefficient_history=history,
            last_updated=user.coefficient_updated_at,
        )

    async def content_shares(self, content_id: int) -> ContentSharesView:
        await self._require_content(content_id)
        epoch, shares = await self.calculator.snapshot(content_id)
        return ContentSharesView(
            content_id=content_id,
            shares=shares,
            last_updated=from_epoch_millis(epoch),
        )

    async def user_investments(self, username: str) -> List[Holding]:
        """Per-content holdings of a user, newest content position first."""
        await self._require_user(username)
        investments = await self.investments.list_for_user(username)

        invested: Dict[int, int] = defaultdict(int)
        first_at: Dict[int, datetime] = {}
        for investment in investments:
            invested[investment.content_id] += investment.amount
            seen = first_at.get(investment.content_id)
            if seen is None or investment.created_at < seen:
                first_at[investment.content_id] = investment.created_at

        dividends: Dict[int, int] = defaultdict(int)
        for record in await self.investments.list_dividends_for_user(username):
            dividends[record.content_id] += record.amount

        holdings = []
        for content_id, total in invested.items():
            content = await self.contents.get(content_id)
            if content is None:
                continue
            shares = await self.calculator.effective_shares(content_id)
            mine = [s for s in shares if s.username == username]
            holdings.append(Holding(
                content_id=content_id,
                content_title=content.title,
                content_author=content.author,
                total_invested=total,
                effective_amount=sum(s.effective_amount for s in mine),
                current_share=round(sum(s.share for s in mine) * 100, 2),
                total_content_investment=content.total_investment,
                total_dividends=dividends[content_id],
                first_invested_at=first_at[content_id],
            ))

        holdings.sort(key=lambda h: h.first_invested_at, reverse=True)
        return holdings

    # =========================================================================
    # ADMINISTRATION
    # =========================================================================

    async def batch_update_coefficients(self) -> CoefficientUpdateReport:
        return await self.trigger.batch_update_coefficients()

    async def set_manual_coefficient(self, username: str, coefficient: float) -> CoefficientHistoryEntry:
        return await self.trigger.set_manual_coefficient(username, coefficient)

    def clear_cache(self):
        self.cache.invalidate()
