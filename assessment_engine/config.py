"""Application configuration management using Pydantic Settings.

This module loads and validates environment variables using Pydantic Settings.
All configuration is loaded from environment variables or a .env file.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Attributes:
        database_url: Database connection string for the remote progress store
        database_pool_size: Number of connections to maintain in pool
        database_max_overflow: Maximum overflow connections beyond pool_size
        environment: Application environment (development, staging, production)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        surveys_dir: Path to directory containing survey YAML files
        default_survey_type: Survey type used when none is given
        local_cache_dir: Directory used as the local durable progress cache
        autosave_interval_seconds: Seconds between scheduled auto-saves
        idle_timeout_seconds: Inactivity period that forces a save
        idle_check_interval_seconds: How often inactivity is checked
        recent_activity_days: Window for the export "recent submissions" metric
        progress_conflict_guard: Reject progress writes made from a stale version
    """

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./assessment.db",
        description="Database connection string"
    )
    database_pool_size: int = Field(
        default=5,
        description="Number of database connections in pool"
    )
    database_max_overflow: int = Field(
        default=10,
        description="Maximum overflow connections beyond pool size"
    )

    # Application Configuration
    environment: str = Field(
        default="development",
        description="Application environment"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    surveys_dir: str = Field(
        default="./surveys",
        description="Path to surveys directory"
    )
    default_survey_type: str = Field(
        default="leadership_assessment",
        description="Survey type used when none is given"
    )

    # Progress Persistence
    local_cache_dir: str = Field(
        default="./.progress_cache",
        description="Directory for the local progress cache"
    )
    autosave_interval_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Seconds between scheduled auto-saves"
    )
    idle_timeout_seconds: float = Field(
        default=1800.0,
        gt=0,
        description="Seconds of inactivity before a forced save"
    )
    idle_check_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Seconds between inactivity checks"
    )
    progress_conflict_guard: bool = Field(
        default=True,
        description="Reject progress writes based on a stale version"
    )

    # Export
    recent_activity_days: int = Field(
        default=7,
        ge=1,
        description="Days counted as recent activity in export summaries"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is one of the allowed values."""
        allowed = {"development", "staging", "production"}
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of {allowed}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"Log level must be one of {allowed}")
        return v_upper

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Application settings singleton

    Note:
        Uses lru_cache to ensure settings are only loaded once
        and shared across the application.
    """
    return Settings()
