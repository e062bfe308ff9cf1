"""
Application configuration using Pydantic Settings.

Environment-based infrastructure switching is controlled by the ENVIRONMENT variable.
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===========================================
    # Environment
    # ===========================================
    ENVIRONMENT: Literal["local", "test"] = "local"
    DEBUG: bool = True

    # ===========================================
    # Database
    # ===========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./dispatch.db"

    # ===========================================
    # Server
    # ===========================================
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )

    # ===========================================
    # Scheduling defaults
    # ===========================================
    # Plans created without a timezone use this one
    DEFAULT_TIMEZONE: str = "America/Chicago"

    # Start time used for "anytime" arrival constraints (HH:MM, plan local time)
    ANYTIME_ARRIVAL_TIME: str = "09:00"

    # Lead time before an "arrive by" deadline
    ARRIVAL_BY_LEAD_MINUTES: int = 240

    # Visit length for "when done" finish constraints
    DEFAULT_VISIT_DURATION_MINUTES: int = 120

    # ===========================================
    # Occurrence generation
    # ===========================================
    DEFAULT_DAYS_AHEAD: int = 30

    # Retries when a concurrent generation inserted the same dates first
    GENERATION_MAX_RETRIES: int = 3

    # Daily sweep time (server local time)
    OCCURRENCE_SWEEP_HOUR: int = 2
    OCCURRENCE_SWEEP_MINUTE: int = 15

    # ===========================================
    # Visit service
    # ===========================================
    # Empty -> visits are stored in the local database
    VISIT_SERVICE_URL: str = ""
    VISIT_SERVICE_TIMEOUT_SECONDS: float = 10.0

    @property
    def is_local(self) -> bool:
        """Check if running in local environment."""
        return self.ENVIRONMENT == "local"

    @property
    def uses_remote_visit_service(self) -> bool:
        return bool(self.VISIT_SERVICE_URL)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings
    """
    return Settings()
