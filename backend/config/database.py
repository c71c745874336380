"""
Database Configuration
======================

Centralized PostgreSQL connection configuration for the API and scripts.
Values come from Settings (environment / .env) so every entry point shares
the same connection parameters.
"""
from dataclasses import dataclass
from typing import Optional
import logging

from .settings import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""
    host: str
    port: int
    user: str
    password: str
    database: str
    min_size: int = 2
    max_size: int = 10

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> 'PostgresConfig':
        """Create config from application settings."""
        settings = settings or get_settings()
        if not settings.postgres_host:
            raise ValueError("POSTGRES_HOST environment variable is required")

        return cls(
            host=settings.postgres_host,
            port=settings.postgres_port,
            user=settings.postgres_user,
            password=settings.postgres_password,
            database=settings.postgres_db,
            min_size=settings.postgres_min_pool,
            max_size=settings.postgres_max_pool,
        )

    def to_asyncpg_kwargs(self) -> dict:
        """Convert to asyncpg.create_pool kwargs."""
        return {
            'host': self.host,
            'port': self.port,
            'user': self.user,
            'password': self.password,
            'database': self.database,
            'min_size': self.min_size,
            'max_size': self.max_size,
        }


def get_postgres_config(settings: Optional[Settings] = None) -> PostgresConfig:
    """Get PostgreSQL configuration from settings."""
    return PostgresConfig.from_settings(settings)


async def create_postgres_pool(settings: Optional[Settings] = None):
    """Create PostgreSQL connection pool from settings."""
    import asyncpg
    config = get_postgres_config(settings)
    logger.info(f"Connecting to PostgreSQL at {config.host}:{config.port}/{config.database}")
    return await asyncpg.create_pool(**config.to_asyncpg_kwargs())
