"""
Coefficient Scorer
==================

Turns a user's recent investment track record into a bounded coefficient.

For every investment i inside the trailing window:

    attraction(i)  = money invested into the same content after i / i.amount
    time_weight(i) = exp(-days_since(i) / decay_days)
    good(i)        = attraction(i) >= good_attraction_rate

    average  = sum(attraction * weight) / sum(weight)
    success  = good / total
    activity = min(total / activity_divisor, activity_cap)

    score = clamp(base + perf_w * average + success_w * success + activity)

Sparse histories skip the formula: no investments scores the neutral
coefficient, fewer than `early_adopter_threshold` scores the early-adopter
coefficient.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence

from utils.datetime_utils import days_between, utc_now

from .cache import DerivedValueCache
from .errors import ScoreComputationError
from .ports import InvestmentRepository, UserRepository
from .types import EngineParameters, InvestmentSample, ScoreBreakdown

logger = logging.getLogger(__name__)


def compute_score(
    samples: Sequence[InvestmentSample],
    now: datetime,
    params: EngineParameters,
) -> ScoreBreakdown:
    """Score a window of investment samples. Pure function."""
    total = len(samples)
    if total == 0:
        return ScoreBreakdown(score=params.coefficient_default)

    weighted_sum = 0.0
    weight_sum = 0.0
    good = 0
    for sample in samples:
        rate = sample.attraction_rate
        age_days = max(0.0, days_between(sample.created_at, now))
        weight = math.exp(-age_days / params.decay_days)
        if rate >= params.good_attraction_rate:
            good += 1
        weighted_sum += rate * weight
        weight_sum += weight

    average = weighted_sum / weight_sum if weight_sum > 0 else 0.0
    success_rate = good / total
    activity = min(total / params.activity_divisor, params.activity_cap)

    if total < params.early_adopter_threshold:
        score = params.early_adopter_coefficient
    else:
        raw = (
            params.base_score
            + params.performance_weight * average
            + params.success_weight * success_rate
            + activity
        )
        score = params.clamp(raw)

    return ScoreBreakdown(
        score=score,
        average_performance=average,
        success_rate=success_rate,
        activity_bonus=activity,
        investment_count=total,
        good_investments=good,
    )


class CoefficientScorer:
    """
    Reads the ledger and scores users. Never writes.

    Also resolves a user's *current* (persisted) coefficient through the
    derived-value cache for share computation.
    """

    def __init__(
        self,
        users: UserRepository,
        investments: InvestmentRepository,
        cache: DerivedValueCache,
        params: EngineParameters,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.users = users
        self.investments = investments
        self.cache = cache
        self.params = params
        self.clock = clock

    async def load_samples(
        self, username: str, window_days: Optional[int] = None
    ) -> List[InvestmentSample]:
        """Investments inside the window, each with its follow-on money."""
        window = self.params.scoring_window_days if window_days is None else window_days
        since = self.clock() - timedelta(days=window)
        try:
            recent = await self.investments.list_for_user(username, since=since)
            samples = []
            for investment in recent:
                subsequent = await self.investments.sum_invested_after(
                    investment.content_id, investment.created_at
                )
                samples.append(InvestmentSample(
                    amount=investment.amount,
                    subsequent_amount=subsequent,
                    created_at=investment.created_at,
                ))
            return samples
        except ScoreComputationError:
            raise
        except Exception as e:
            raise ScoreComputationError(username, str(e)) from e

    async def score_breakdown(
        self, username: str, window_days: Optional[int] = None
    ) -> ScoreBreakdown:
        samples = await self.load_samples(username, window_days)
        breakdown = compute_score(samples, self.clock(), self.params)
        logger.info(
            f"Scored {username}: {breakdown.score:.4f} "
            f"(investments={breakdown.investment_count}, "
            f"avg={breakdown.average_performance:.4f}, "
            f"success={breakdown.success_rate:.2f}, "
            f"activity={breakdown.activity_bonus:.2f})"
        )
        return breakdown

    async def score_performance(
        self, username: str, window_days: Optional[int] = None
    ) -> float:
        """Bounded coefficient for a user's recent track record."""
        breakdown = await self.score_breakdown(username, window_days)
        return breakdown.score

    async def current_coefficient(self, username: str) -> float:
        """
        The user's persisted coefficient, served from cache within the TTL.

        Unknown users resolve to the neutral coefficient.
        """
        cached = self.cache.get_coefficient(username)
        if cached is not None:
            return cached.coefficient

        try:
            user = await self.users.get(username)
        except Exception as e:
            raise ScoreComputationError(username, str(e)) from e

        coefficient = user.coefficient if user else self.params.coefficient_default
        self.cache.put_coefficient(username, coefficient)
        return coefficient
