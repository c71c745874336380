from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables can come from:
    - docker-compose.yml environment section
    - .env file
    - System environment

    Variable names match docker-compose conventions:
    - POSTGRES_HOST, POSTGRES_PORT, etc. (for database)
    - COEFFICIENT_MIN, DIVIDEND_FRACTION, etc. (for the engine)
    """

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    # PostgreSQL (from docker-compose)
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "credence_user"
    postgres_password: str = "credence_pass"
    postgres_db: str = "credence"
    postgres_min_pool: int = 2
    postgres_max_pool: int = 10
    database_url: Optional[str] = Field(default=None, validate_default=True)

    # Coefficient bounds and scoring
    coefficient_min: float = 0.5
    coefficient_max: float = Field(default=3.0, validate_default=True)
    coefficient_default: float = 1.0
    early_adopter_coefficient: float = 1.1
    early_adopter_threshold: int = 3
    scoring_window_days: int = 30
    decay_days: float = 7.0
    good_attraction_rate: float = 0.3
    batch_smoothing: float = 0.9

    # Dividends
    dividend_fraction: float = 0.10

    # Derived-value cache (seconds)
    coefficient_cache_ttl: float = 60.0

    # Views
    history_limit: int = 10

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra env vars

    @field_validator('database_url', mode='before')
    @classmethod
    def construct_database_url(cls, v, info):
        """Construct database URL from components if not explicitly set"""
        if v:
            return v

        data = info.data
        host = data.get('postgres_host', 'localhost')
        port = data.get('postgres_port', 5432)
        user = data.get('postgres_user', 'credence_user')
        password = data.get('postgres_password', 'credence_pass')
        db = data.get('postgres_db', 'credence')

        return f"postgresql://{user}:{password}@{host}:{port}/{db}"

    @field_validator('coefficient_max')
    @classmethod
    def check_bounds(cls, v, info):
        """Upper coefficient bound must sit above the lower one"""
        lower = info.data.get('coefficient_min', 0.5)
        if v <= lower:
            raise ValueError(f"coefficient_max ({v}) must exceed coefficient_min ({lower})")
        return v

    @field_validator('dividend_fraction')
    @classmethod
    def check_fraction(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"dividend_fraction must be within [0, 1], got {v}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
