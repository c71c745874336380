"""
Content Repository - PostgreSQL storage for investable content

Storage: PostgreSQL (contents table)

Investment statistics are maintained by InvestmentRepository; this
repository only creates and reads content.
"""
import json
import logging
from typing import List, Optional

import asyncpg

from models.domain import Content, InvestmentEvent
from utils.datetime_utils import ensure_utc

from .session import connection

logger = logging.getLogger(__name__)


class ContentRepository:
    """Repository for Content domain model."""

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    async def get(self, content_id: int) -> Optional[Content]:
        """Get content by ID."""
        async with connection(self.db_pool) as conn:
            row = await conn.fetchrow("""
                SELECT * FROM contents WHERE id = $1
            """, content_id)

            if not row:
                return None
            return self._row_to_content(row)

    async def create(self, content: Content) -> Content:
        """Create content, returns it with its generated ID."""
        async with connection(self.db_pool) as conn:
            row = await conn.fetchrow("""
                INSERT INTO contents (title, author)
                VALUES ($1, $2)
                RETURNING *
            """, content.title, content.author)

            logger.info(f"Created content {row['id']} by {content.author}")
            return self._row_to_content(row)

    def _row_to_content(self, row: asyncpg.Record) -> Content:
        history = row['investment_history'] or []
        if isinstance(history, str):
            history = json.loads(history)

        return Content(
            id=row['id'],
            title=row['title'],
            author=row['author'],
            total_investment=row['total_investment'] or 0,
            investor_count=row['investor_count'] or 0,
            average_investment=float(row['average_investment'] or 0),
            investment_history=self._parse_history(history),
            created_at=ensure_utc(row['created_at']),
            updated_at=ensure_utc(row['updated_at']),
        )

    @staticmethod
    def _parse_history(history: List[dict]) -> List[InvestmentEvent]:
        return [
            InvestmentEvent(
                investor=event['investor'],
                amount=event['amount'],
                timestamp=ensure_utc(event['timestamp']),
                total_investment_after=event['totalInvestmentAfter'],
            )
            for event in history
        ]
