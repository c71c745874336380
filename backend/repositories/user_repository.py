"""
User Repository - PostgreSQL storage for users and coefficient history

Storage: PostgreSQL (users, coefficient_history tables)
"""
import logging
from datetime import datetime
from typing import List, Optional

import asyncpg

from models.domain import CoefficientHistoryEntry, CoefficientReason, User
from utils.datetime_utils import ensure_utc

from .session import connection

logger = logging.getLogger(__name__)


class UserRepository:
    """
    Repository for User domain model

    Coefficient writes always go through update_coefficient so the users
    row and its history entry change in the same transaction.
    """

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get(self, username: str) -> Optional[User]:
        """
        Retrieve user by username.

        Args:
            username: Unique username

        Returns:
            User model or None
        """
        async with connection(self.db_pool) as conn:
            row = await conn.fetchrow("""
                SELECT username, balance, coefficient, coefficient_updated_at,
                       total_invested, total_dividends, created_at
                FROM users
                WHERE username = $1
            """, username)

            if not row:
                return None
            return self._row_to_user(row)

    async def list_all(self) -> List[User]:
        """All users ordered by username."""
        async with connection(self.db_pool) as conn:
            rows = await conn.fetch("""
                SELECT username, balance, coefficient, coefficient_updated_at,
                       total_invested, total_dividends, created_at
                FROM users
                ORDER BY username
            """)
            return [self._row_to_user(row) for row in rows]

    async def get_coefficient_epoch(self) -> Optional[datetime]:
        """Latest coefficient_updated_at across all users."""
        async with connection(self.db_pool) as conn:
            value = await conn.fetchval("""
                SELECT MAX(coefficient_updated_at) FROM users
            """)
            return ensure_utc(value)

    async def get_coefficient_history(
        self, username: str, limit: int = 10
    ) -> List[CoefficientHistoryEntry]:
        """Most recent coefficient changes first."""
        async with connection(self.db_pool) as conn:
            rows = await conn.fetch("""
                SELECT id, username, old_coefficient, new_coefficient, reason,
                       performance_score, created_at
                FROM coefficient_history
                WHERE username = $1
                ORDER BY created_at DESC, id DESC
                LIMIT $2
            """, username, limit)
            return [self._row_to_history(row) for row in rows]

    # =========================================================================
    # CREATE OPERATION
    # =========================================================================

    async def create(self, user: User) -> User:
        """
        Create a new user.

        Args:
            user: User model (coefficient defaults to 1.0)

        Returns:
            Created user as stored
        """
        async with connection(self.db_pool) as conn:
            row = await conn.fetchrow("""
                INSERT INTO users (username, balance, coefficient)
                VALUES ($1, $2, $3)
                RETURNING username, balance, coefficient, coefficient_updated_at,
                          total_invested, total_dividends, created_at
            """, user.username, user.balance, user.coefficient)

            logger.info(f"Created user {user.username} with balance {user.balance}")
            return self._row_to_user(row)

    # =========================================================================
    # UPDATE OPERATIONS
    # =========================================================================

    async def update_coefficient(
        self,
        username: str,
        new_coefficient: float,
        reason: CoefficientReason,
        performance_score: Optional[float],
        at: datetime,
    ) -> Optional[CoefficientHistoryEntry]:
        """
        Persist a coefficient and append its history entry.

        Returns:
            The history entry, or None if the user does not exist
        """
        async with connection(self.db_pool) as conn:
            async with conn.transaction():
                old = await conn.fetchval("""
                    SELECT coefficient FROM users WHERE username = $1 FOR UPDATE
                """, username)
                if old is None:
                    return None

                await conn.execute("""
                    UPDATE users
                    SET coefficient = $2,
                        coefficient_updated_at = $3,
                        updated_at = now()
                    WHERE username = $1
                """, username, new_coefficient, at)

                row = await conn.fetchrow("""
                    INSERT INTO coefficient_history (
                        username, old_coefficient, new_coefficient, reason,
                        performance_score, created_at
                    )
                    VALUES ($1, $2, $3, $4, $5, $6)
                    RETURNING id, username, old_coefficient, new_coefficient, reason,
                              performance_score, created_at
                """, username, float(old), new_coefficient, reason.value, performance_score, at)

                return self._row_to_history(row)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _row_to_user(self, row: asyncpg.Record) -> User:
        return User(
            username=row['username'],
            balance=row['balance'],
            coefficient=float(row['coefficient']),
            coefficient_updated_at=ensure_utc(row['coefficient_updated_at']),
            total_invested=row['total_invested'] or 0,
            total_dividends=row['total_dividends'] or 0,
            created_at=ensure_utc(row['created_at']),
        )

    def _row_to_history(self, row: asyncpg.Record) -> CoefficientHistoryEntry:
        score = row['performance_score']
        return CoefficientHistoryEntry(
            id=row['id'],
            username=row['username'],
            old_coefficient=float(row['old_coefficient']),
            new_coefficient=float(row['new_coefficient']),
            reason=CoefficientReason(row['reason']),
            performance_score=float(score) if score is not None else None,
            created_at=ensure_utc(row['created_at']),
        )
