"""
Configuration settings for the learner-progression engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///progression.db",
        description="SQLAlchemy connection string (PostgreSQL or SQLite)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default="logs/progression.log",
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Calendar
    # ========================================
    progression_timezone: str = Field(
        default="UTC",
        description="Reference time zone for streak and review dates (IANA name)",
    )

    # ========================================
    # Experience & Badges
    # ========================================
    streak_bonus_per_day: int = Field(
        default=5,
        description="XP per streak day granted when a streak is extended",
    )
    flashcard_review_xp: int = Field(
        default=2,
        description="XP granted for each reviewed flashcard",
    )
    badge_cascade_max_depth: int = Field(
        default=2,
        description="Maximum nesting of badge -> level-up -> badge checks",
    )
    catalog_ttl_seconds: int = Field(
        default=300,
        description="Seconds before the cached badge catalog is reloaded",
    )

    # ========================================
    # Review Grading (response time -> SM-2 quality)
    # ========================================
    quality_quick_wrong_ms: int = Field(
        default=2000,
        description="Wrong answers faster than this grade 1, slower ones 0",
    )
    quality_perfect_ms: int = Field(
        default=1500,
        description="Correct answers faster than this grade 5",
    )
    quality_good_ms: int = Field(
        default=3000,
        description="Correct answers faster than this grade 4",
    )
    quality_hard_ms: int = Field(
        default=5000,
        description="Correct answers faster than this grade 3 (slower ones are capped at 3)",
    )

    def get_progression_config(self) -> dict[str, Any]:
        """Get progression tuning as a dictionary."""
        return {
            "timezone": self.progression_timezone,
            "streak_bonus_per_day": self.streak_bonus_per_day,
            "flashcard_review_xp": self.flashcard_review_xp,
            "badge_cascade_max_depth": self.badge_cascade_max_depth,
            "catalog_ttl_seconds": self.catalog_ttl_seconds,
            "quality_thresholds": {
                "quick_wrong_ms": self.quality_quick_wrong_ms,
                "perfect_ms": self.quality_perfect_ms,
                "good_ms": self.quality_good_ms,
                "hard_ms": self.quality_hard_ms,
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
