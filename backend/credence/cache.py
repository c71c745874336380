"""
Derived-Value Cache
===================

Memoizes two derived quantities:

  coeff_{username}              -> CachedCoefficient, TTL (default 60s)
  shares_{content_id}_{epoch}   -> list of EffectiveShare, no TTL

The share key embeds the coefficient epoch (latest coefficient write across
all users, epoch millis). Any coefficient write anywhere moves the epoch, so
stale share entries are simply never looked up again. New investments do
not move the epoch, so the ledger writer drops the content's entries with
invalidate_content.

A share table computed while an invalidation landed describes a ledger or
coefficient set that no longer exists. Readers capture share_generation()
before loading anything and hand it to put_shares, which refuses the write
if any invalidation covering that content happened in between.

Owned by a service instance; the clock is injected so tests can control
expiry.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from services.cache import TTLCache
from utils.datetime_utils import utc_now

from .types import EffectiveShare

logger = logging.getLogger(__name__)

COEFFICIENT_PREFIX = "coeff_"
SHARES_PREFIX = "shares_"


@dataclass(frozen=True)
class CachedCoefficient:
    coefficient: float
    computed_at: datetime


class DerivedValueCache:
    """Coefficient and effective-share memoization with explicit invalidation."""

    def __init__(
        self,
        coefficient_ttl: float = 60.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.clock = clock
        self.coefficient_ttl = coefficient_ttl
        self._coefficients = TTLCache(default_ttl=coefficient_ttl, clock=clock)
        self._shares = TTLCache(default_ttl=None, clock=clock)
        # Bumped by invalidate() and invalidate_content() respectively
        self._generation = 0
        self._content_generations: Dict[int, int] = defaultdict(int)

    # =========================================================================
    # KEYS
    # =========================================================================

    @staticmethod
    def coefficient_key(username: str) -> str:
        return f"{COEFFICIENT_PREFIX}{username}"

    @staticmethod
    def share_key(content_id: int, epoch: int) -> str:
        return f"{SHARES_PREFIX}{content_id}_{epoch}"

    # =========================================================================
    # COEFFICIENTS
    # =========================================================================

    def get_coefficient(self, username: str) -> Optional[CachedCoefficient]:
        cached = self._coefficients.get(self.coefficient_key(username))
        if cached is not None:
            logger.debug(f"Coefficient cache hit: {username}")
        return cached

    def put_coefficient(self, username: str, coefficient: float) -> CachedCoefficient:
        entry = CachedCoefficient(coefficient=coefficient, computed_at=self.clock())
        self._coefficients.set(self.coefficient_key(username), entry)
        return entry

    # =========================================================================
    # SHARES
    # =========================================================================

    def get_shares(self, content_id: int, epoch: int) -> Optional[List[EffectiveShare]]:
        cached = self._shares.get(self.share_key(content_id, epoch))
        if cached is None:
            logger.debug(f"Share cache miss: content {content_id} epoch {epoch}")
            return None
        return list(cached)

    def share_generation(self, content_id: int) -> Tuple[int, int]:
        """Invalidation counter for one content; capture before loading its inputs."""
        return self._generation, self._content_generations[content_id]

    def put_shares(
        self,
        content_id: int,
        epoch: int,
        shares: List[EffectiveShare],
        generation: Optional[Tuple[int, int]] = None,
    ) -> bool:
        """Store a share table unless it was computed across an invalidation."""
        if generation is not None and generation != self.share_generation(content_id):
            logger.debug(
                f"Discarding share table for content {content_id}: "
                f"invalidated while it was computed"
            )
            return False
        self._shares.set(self.share_key(content_id, epoch), tuple(shares))
        return True

    # =========================================================================
    # INVALIDATION
    # =========================================================================

    def invalidate(self, username: Optional[str] = None):
        """
        Drop cached values.

        With a username: that user's coefficient entry plus any share key
        containing the username. Without: clear everything. Safe to call
        repeatedly.
        """
        # Any coefficient may feed any content's table
        self._generation += 1
        if username:
            self._coefficients.delete(self.coefficient_key(username))
            removed = self._shares.delete_matching(lambda key: username in key)
            logger.debug(f"Invalidated cache for {username} ({removed} share entries)")
        else:
            self._coefficients.clear()
            self._shares.clear()
            logger.debug("Invalidated entire derived-value cache")

    def invalidate_content(self, content_id: int) -> int:
        """Drop every cached share table of one content (any epoch)."""
        self._content_generations[content_id] += 1
        prefix = f"{SHARES_PREFIX}{content_id}_"
        return self._shares.delete_matching(lambda key: key.startswith(prefix))

    def stats(self) -> Dict[str, int]:
        return {
            "coefficients": len(self._coefficients),
            "shares": len(self._shares),
        }
