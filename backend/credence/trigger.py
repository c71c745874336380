"""
Coefficient Update Trigger
==========================

Re-scores users after ledger changes and persists the results.

After an investment commits:
  1. re-score the investor                 (reason: investment_made)
  2. re-score every other investor there   (reason: attracted_investment)
  3. clear the derived-value cache, strictly after all writes in 1-2

Steps 1 and 2 run concurrently. A failure for one user is logged and
reported; it never stops the others and never touches the already
committed investment.

The batch job re-scores every user with an exponential moving average so a
single investment cannot swing a coefficient wildly.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional, Union

from models.domain import CoefficientHistoryEntry, CoefficientReason
from utils.datetime_utils import utc_now

from .cache import DerivedValueCache
from .errors import UserNotFoundError
from .ports import InvestmentRepository, UserRepository
from .scorer import CoefficientScorer
from .types import CoefficientUpdateReport, EngineParameters, FailedUpdate

logger = logging.getLogger(__name__)


class CoefficientUpdateTrigger:
    """Owns every coefficient write."""

    def __init__(
        self,
        users: UserRepository,
        investments: InvestmentRepository,
        scorer: CoefficientScorer,
        cache: DerivedValueCache,
        params: EngineParameters,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.users = users
        self.investments = investments
        self.scorer = scorer
        self.cache = cache
        self.params = params
        self.clock = clock

    # =========================================================================
    # WRITES
    # =========================================================================

    async def apply_coefficient(
        self,
        username: str,
        new_coefficient: float,
        reason: CoefficientReason,
        performance_score: Optional[float],
    ) -> CoefficientHistoryEntry:
        """Clamp, persist and record a coefficient (one storage transaction)."""
        bounded = self.params.clamp(new_coefficient)
        entry = await self.users.update_coefficient(
            username,
            bounded,
            reason,
            performance_score,
            self.clock(),
        )
        if entry is None:
            raise UserNotFoundError(username)

        logger.info(
            f"Coefficient {username}: {entry.old_coefficient:.4f} -> "
            f"{entry.new_coefficient:.4f} ({reason.value})"
        )
        return entry

    async def rescore(self, username: str, reason: CoefficientReason) -> CoefficientHistoryEntry:
        """Score a user from the ledger and persist the result."""
        breakdown = await self.scorer.score_breakdown(username)
        return await self.apply_coefficient(
            username,
            breakdown.score,
            reason,
            breakdown.average_performance,
        )

    async def _guarded(
        self, username: str, reason: CoefficientReason
    ) -> Union[CoefficientHistoryEntry, FailedUpdate]:
        try:
            return await self.rescore(username, reason)
        except Exception as e:
            logger.exception(f"Coefficient update failed for {username} ({reason.value})")
            return FailedUpdate(username=username, error=str(e))

    @staticmethod
    def _collect(results: List[Union[CoefficientHistoryEntry, FailedUpdate]]) -> CoefficientUpdateReport:
        report = CoefficientUpdateReport()
        for result in results:
            if isinstance(result, FailedUpdate):
                report.failed.append(result)
            else:
                report.succeeded.append(result)
        return report

    # =========================================================================
    # TRIGGERS
    # =========================================================================

    async def on_investment_committed(
        self, content_id: int, investing_username: str
    ) -> CoefficientUpdateReport:
        """Re-score the investor and every co-investor of the content."""
        try:
            investors = await self.investments.investor_usernames(content_id)
            others = sorted({u for u in investors if u != investing_username})
        except Exception as e:
            logger.exception(f"Could not list investors of content {content_id}")
            others = []
            failure = FailedUpdate(username="*", error=f"investor lookup failed: {e}")
        else:
            failure = None

        results = await asyncio.gather(
            self._guarded(investing_username, CoefficientReason.INVESTMENT_MADE),
            *[self._guarded(u, CoefficientReason.ATTRACTED_INVESTMENT) for u in others],
        )
        report = self._collect(list(results))
        if failure:
            report.failed.append(failure)

        # Only after every write above has finished
        self.cache.invalidate()

        logger.info(
            f"Content {content_id}: re-scored {len(report.succeeded)} investors, "
            f"{len(report.failed)} failed"
        )
        return report

    async def batch_update_coefficients(self) -> CoefficientUpdateReport:
        """
        Re-score every user with an exponential moving average:

            new = smoothing * old + (1 - smoothing) * fresh_score
        """
        smoothing = self.params.batch_smoothing
        users = await self.users.list_all()
        report = CoefficientUpdateReport()

        for user in users:
            try:
                fresh = await self.scorer.score_performance(user.username)
                blended = smoothing * user.coefficient + (1 - smoothing) * fresh
                entry = await self.apply_coefficient(
                    user.username,
                    blended,
                    CoefficientReason.BATCH_UPDATE,
                    fresh,
                )
                report.succeeded.append(entry)
            except Exception as e:
                logger.exception(f"Batch coefficient update failed for {user.username}")
                report.failed.append(FailedUpdate(username=user.username, error=str(e)))

        self.cache.invalidate()
        logger.info(
            f"Batch coefficient update: {len(report.succeeded)} updated, "
            f"{len(report.failed)} failed"
        )
        return report

    async def set_manual_coefficient(
        self, username: str, coefficient: float
    ) -> CoefficientHistoryEntry:
        """Administrative override (reason: manual)."""
        entry = await self.apply_coefficient(
            username,
            coefficient,
            CoefficientReason.MANUAL,
            None,
        )
        self.cache.invalidate(username)
        return entry
