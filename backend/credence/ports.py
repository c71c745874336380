"""
Repository Protocols
====================

Capability sets the engine needs from storage. The PostgreSQL repositories
in `repositories/` implement them; tests use in-memory fakes. The engine
never imports a storage driver.
"""

from datetime import datetime
from typing import AsyncContextManager, List, Optional, Protocol, Sequence

from models.domain import (
    CoefficientHistoryEntry,
    CoefficientReason,
    Content,
    DividendRecord,
    Investment,
    User,
)

from .types import DividendPayout


class UserRepository(Protocol):
    """Users, their coefficients and coefficient history."""

    async def get(self, username: str) -> Optional[User]: ...

    async def list_all(self) -> List[User]: ...

    async def get_coefficient_epoch(self) -> Optional[datetime]:
        """Latest coefficient_updated_at across all users (None if no users)."""
        ...

    async def update_coefficient(
        self,
        username: str,
        new_coefficient: float,
        reason: CoefficientReason,
        performance_score: Optional[float],
        at: datetime,
    ) -> Optional[CoefficientHistoryEntry]:
        """
        Persist a coefficient and append its history entry atomically.

        Returns None when the user does not exist.
        """
        ...

    async def get_coefficient_history(
        self, username: str, limit: int = 10
    ) -> List[CoefficientHistoryEntry]:
        """Most recent entries first."""
        ...


class ContentRepository(Protocol):
    """Content lookup."""

    async def get(self, content_id: int) -> Optional[Content]: ...


class InvestmentRepository(Protocol):
    """
    The investment ledger.

    `content_lock` is the storage layer's guarantee that at most one
    "read shares -> pay dividends -> append investment" sequence runs per
    content at a time.
    """

    async def list_for_content(self, content_id: int) -> List[Investment]:
        """All investments of a content ordered by created_at ascending."""
        ...

    async def list_for_user(
        self, username: str, since: Optional[datetime] = None
    ) -> List[Investment]:
        """A user's investments (created strictly after `since` when given)."""
        ...

    async def sum_invested_after(self, content_id: int, after: datetime) -> int:
        """Sum of amounts invested into a content strictly after `after`."""
        ...

    async def investor_usernames(self, content_id: int) -> List[str]:
        """Distinct usernames holding investments in a content."""
        ...

    async def list_dividends_for_user(self, username: str) -> List[DividendRecord]: ...

    def content_lock(self, content_id: int) -> AsyncContextManager[None]: ...

    async def record_investment(
        self,
        username: str,
        content_id: int,
        amount: int,
        coefficient: float,
        dividends: Sequence[DividendPayout],
        at: datetime,
    ) -> Investment:
        """
        Apply one investment atomically: debit the investor, credit every
        dividend, append the investment, refresh content statistics.

        Raises InsufficientBalanceError if the debit would overdraw.
        """
        ...
