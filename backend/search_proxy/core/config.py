"""Application configuration settings"""
from functools import lru_cache
from typing import List, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Record store (SQLite for local development, PostgreSQL for production)
    DATABASE_URL: str = "sqlite+aiosqlite:///./search_analytics.db"

    # Response cache
    REDIS_URL: str = "redis://localhost:6379"
    ENABLE_CACHE: bool = True

    # CORS
    ALLOWED_ORIGINS: Union[str, List[str]] = ["https://www.seattleu.edu"]

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    # Cache TTL per endpoint category (seconds)
    CACHE_TTL_SUGGESTIONS: int = 14400  # 4 hours
    CACHE_TTL_PROGRAMS: int = 259200  # 3 days
    CACHE_TTL_PEOPLE: int = 86400  # 24 hours
    CACHE_TTL_DEFAULT: int = 1800  # 30 minutes

    # Store access
    STORE_TIMEOUT_SECONDS: float = 3.0
    STORE_MAX_RETRIES: int = 3
    STORE_RECONNECT_COOLDOWN_SECONDS: float = 30.0

    # Click attribution
    CLICK_MATCH_WINDOW_HOURS: int = 24

    # Record expiration
    SUGGESTION_RECORD_TTL_DAYS: int = 30
    SEARCH_RECORD_TTL_DAYS: int = 60
    TTL_BACKFILL_BATCH_SIZE: int = 10000
    ENABLE_EXPIRY_SWEEPER: bool = True
    EXPIRY_SWEEP_INTERVAL_SECONDS: int = 3600

    # Security
    MIGRATION_AUTH_KEY: str = "secure-migration-key"

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
