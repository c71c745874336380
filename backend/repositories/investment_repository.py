"""
Investment Repository - PostgreSQL investment ledger

Storage: PostgreSQL (investments, dividends, users, contents tables)

record_investment applies the investor debit, every dividend credit, the
investment row and the content statistics in a single transaction.
"""
import asyncio
import json
import logging
import weakref
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, List, Optional, Sequence

import asyncpg

from credence.errors import InsufficientBalanceError, StorageError
from credence.types import DividendPayout
from models.domain import DividendRecord, Investment
from utils.datetime_utils import ensure_utc

from .session import bind_connection, connection

logger = logging.getLogger(__name__)

# First key of pg_advisory_lock(int, int); the second is the content id
CONTENT_LOCK_NAMESPACE = 7301


class InvestmentRepository:
    """Repository for the investment ledger."""

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool
        self._local_locks = weakref.WeakValueDictionary()

    # =========================================================================
    # LOCKING
    # =========================================================================

    def _local_lock(self, content_id: int) -> asyncio.Lock:
        lock = self._local_locks.get(content_id)
        if lock is None:
            lock = asyncio.Lock()
            self._local_locks[content_id] = lock
        return lock

    @asynccontextmanager
    async def content_lock(self, content_id: int) -> AsyncIterator[None]:
        """
        Serialize investments into one content.

        Waiters from this process queue on an asyncio.Lock without holding a
        connection; the holder then takes a session advisory lock (other
        processes) on one bound connection that every repository call inside
        the section reuses.
        """
        async with self._local_lock(content_id):
            async with bind_connection(self.db_pool) as conn:
                await conn.execute(
                    "SELECT pg_advisory_lock($1, $2)", CONTENT_LOCK_NAMESPACE, content_id
                )
                try:
                    yield
                finally:
                    await conn.execute(
                        "SELECT pg_advisory_unlock($1, $2)", CONTENT_LOCK_NAMESPACE, content_id
                    )

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def list_for_content(self, content_id: int) -> List[Investment]:
        async with connection(self.db_pool) as conn:
            rows = await conn.fetch("""
                SELECT * FROM investments
                WHERE content_id = $1
                ORDER BY created_at ASC, id ASC
            """, content_id)
            return [self._row_to_investment(row) for row in rows]

    async def list_for_user(
        self, username: str, since: Optional[datetime] = None
    ) -> List[Investment]:
        async with connection(self.db_pool) as conn:
            if since is None:
                rows = await conn.fetch("""
                    SELECT * FROM investments
                    WHERE username = $1
                    ORDER BY created_at ASC, id ASC
                """, username)
            else:
                rows = await conn.fetch("""
                    SELECT * FROM investments
                    WHERE username = $1 AND created_at > $2
                    ORDER BY created_at ASC, id ASC
                """, username, since)
            return [self._row_to_investment(row) for row in rows]

    async def sum_invested_after(self, content_id: int, after: datetime) -> int:
        async with connection(self.db_pool) as conn:
            total = await conn.fetchval("""
                SELECT COALESCE(SUM(amount), 0) FROM investments
                WHERE content_id = $1 AND created_at > $2
            """, content_id, after)
            return int(total)

    async def investor_usernames(self, content_id: int) -> List[str]:
        async with connection(self.db_pool) as conn:
            rows = await conn.fetch("""
                SELECT DISTINCT username FROM investments
                WHERE content_id = $1
                ORDER BY username
            """, content_id)
            return [row['username'] for row in rows]

    async def list_dividends_for_user(self, username: str) -> List[DividendRecord]:
        async with connection(self.db_pool) as conn:
            rows = await conn.fetch("""
                SELECT * FROM dividends
                WHERE recipient = $1
                ORDER BY created_at ASC, id ASC
            """, username)
            return [
                DividendRecord(
                    id=row['id'],
                    content_id=row['content_id'],
                    recipient=row['recipient'],
                    from_username=row['from_username'],
                    amount=row['amount'],
                    investment_id=row['investment_id'],
                    created_at=ensure_utc(row['created_at']),
                )
                for row in rows
            ]

    # =========================================================================
    # LEDGER WRITE
    # =========================================================================

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
        Apply one investment atomically.

        Raises:
            InsufficientBalanceError: debit would overdraw (nothing written)
            StorageError: any database failure (nothing written)
        """
        try:
            async with connection(self.db_pool) as conn:
                async with conn.transaction():
                    debited = await conn.fetchrow("""
                        UPDATE users
                        SET balance = balance - $2,
                            total_invested = total_invested + $2,
                            updated_at = now()
                        WHERE username = $1 AND balance >= $2
                        RETURNING balance
                    """, username, amount)
                    if debited is None:
                        balance = await conn.fetchval(
                            "SELECT balance FROM users WHERE username = $1", username
                        )
                        raise InsufficientBalanceError(username, balance, amount)

                    row = await conn.fetchrow("""
                        INSERT INTO investments (
                            username, content_id, amount, effective_amount,
                            coefficient_at_time, created_at
                        )
                        VALUES ($1, $2, $3, $4, $5, $6)
                        RETURNING *
                    """, username, content_id, amount, amount * coefficient, coefficient, at)
                    investment = self._row_to_investment(row)

                    for payout in dividends:
                        await conn.execute("""
                            UPDATE users
                            SET balance = balance + $2,
                                total_dividends = total_dividends + $2,
                                updated_at = now()
                            WHERE username = $1
                        """, payout.username, payout.amount)
                        await conn.execute("""
                            INSERT INTO dividends (
                                content_id, recipient, from_username, amount,
                                investment_id, created_at
                            )
                            VALUES ($1, $2, $3, $4, $5, $6)
                        """, content_id, payout.username, username, payout.amount,
                            investment.id, at)

                    stats = await conn.fetchrow("""
                        SELECT COUNT(DISTINCT username) AS investor_count,
                               COALESCE(SUM(amount), 0) AS total_investment,
                               COALESCE(AVG(amount), 0) AS average_investment
                        FROM investments
                        WHERE content_id = $1
                    """, content_id)

                    event = {
                        "investor": username,
                        "amount": amount,
                        "timestamp": at.isoformat(),
                        "totalInvestmentAfter": int(stats['total_investment']),
                    }
                    await conn.execute("""
                        UPDATE contents
                        SET total_investment = $2,
                            investor_count = $3,
                            average_investment = $4,
                            investment_history = investment_history || $5::jsonb,
                            updated_at = now()
                        WHERE id = $1
                    """, content_id, int(stats['total_investment']), stats['investor_count'],
                        float(stats['average_investment']), json.dumps([event]))

            logger.debug(
                f"Recorded investment {investment.id}: {username} -> content {content_id} "
                f"({amount} coins, {len(dividends)} dividends)"
            )
            return investment

        except asyncpg.PostgresError as e:
            logger.error(f"Ledger write failed for {username} -> content {content_id}: {e}")
            raise StorageError(
                f"Failed to record investment: {e}",
                {"username": username, "contentId": content_id},
            ) from e

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _row_to_investment(self, row: asyncpg.Record) -> Investment:
        return Investment(
            id=row['id'],
            username=row['username'],
            content_id=row['content_id'],
            amount=row['amount'],
            effective_amount=float(row['effective_amount']),
            coefficient_at_time=float(row['coefficient_at_time']),
            created_at=ensure_utc(row['created_at']),
        )
