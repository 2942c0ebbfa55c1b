"""
Application configuration using Pydantic Settings.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Newsroom Ingest"
    app_version: str = "0.1.0"
    debug: bool = Field(default=False)
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./newsroom.db",
        description="Async database URL (SQLAlchemy format)",
    )

    # API Keys (all optional, a missing key turns the source into a no-op)
    newsapi_key: str | None = Field(default=None)
    guardian_api_key: str | None = Field(default=None)
    firecrawl_api_key: str | None = Field(default=None)

    # Outbound fetching
    source_timeout_seconds: float = Field(
        default=8.0,
        gt=0,
        description="Timeout for a single adapter call",
    )
    category_budget_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Wall-clock budget for one category run across all sources",
    )
    max_concurrent_fetches: int = Field(default=4, ge=1, le=32)
    max_items_per_source: int = Field(default=50, ge=1, le=100)
    http_retries: int = Field(default=2, ge=1, le=5)
    newsapi_country: str = Field(default="us")
    user_agent: str = Field(default="Mozilla/5.0 (compatible; NewsroomIngest/1.0)")

    # Refresh / maintenance
    default_ingest_limit: int = Field(default=50, ge=1, le=500)
    purge_max_age_hours: int = Field(default=48, ge=1)
    pipeline_timeout_seconds: float = Field(default=120.0, gt=0)
    freshness_half_life_hours: float = Field(
        default=24.0,
        gt=0,
        description="Half-life for the freshness exponential decay (hours)",
    )

    # Scheduler
    auto_refresh_enabled: bool = Field(default=True)
    auto_refresh_minutes: int = Field(default=15, ge=1)
    auto_refresh_categories: list[str] = Field(
        default=["general", "technology", "business", "health", "sports", "politics"],
    )
    enable_mock_source: bool = Field(
        default=False,
        description="Add the in-memory sample source to every pipeline",
    )

    # CORS
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
