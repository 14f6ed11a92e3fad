"""
Configuration settings for the leitner review scheduler.

Uses Pydantic Settings for environment variable management with .env file support.
Variables are read with the ``LEITNER_`` prefix (e.g. ``LEITNER_DATABASE_URL``).
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LEITNER_",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///leitner.db",
        description="SQLAlchemy connection string (SQLite or PostgreSQL)",
    )
    sql_echo: bool = Field(
        default=False,
        description="Echo SQL statements through the engine logger",
    )
    upsert_max_attempts: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Optimistic-concurrency attempts before a progress write is abandoned",
    )

    # ========================================
    # Review batches
    # ========================================
    default_review_batch: int = Field(
        default=10,
        ge=1,
        description="Batch size used when a review request gives no limit",
    )
    max_review_batch: int = Field(
        default=100,
        ge=1,
        description="Upper bound applied to requested review batch sizes",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    def get_review_config(self) -> dict[str, int]:
        """Get review batch configuration as a dictionary."""
        return {
            "default_batch": self.default_review_batch,
            "max_batch": max(self.max_review_batch, self.default_review_batch),
            "upsert_max_attempts": self.upsert_max_attempts,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
