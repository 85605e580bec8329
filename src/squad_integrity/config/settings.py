"""Engine configuration using pydantic-settings.

Loads configuration from environment variables with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class IntegritySettings(BaseSettings):
    """Configuration for the integrity engine and its API.

    All settings can be overridden via environment variables.
    The prefix INTEGRITY_ is used for all settings.

    Example:
        export INTEGRITY_AGGREGATE_BATCH_SIZE=50
        export INTEGRITY_VALIDATION_WORKERS=4
    """

    model_config = SettingsConfigDict(
        env_prefix="INTEGRITY_",
        case_sensitive=False,
    )

    # Store access
    retry_base_delay: float = 0.5
    page_size: int = 500

    # Repair
    aggregate_batch_size: int = 25
    revalidation_delay_seconds: float = 1.0

    # Validation
    validation_workers: int = 1

    # Database settings
    db_min_connections: int = 2
    db_max_connections: int = 10
    db_secret_id: str | None = None

    # API settings
    api_version: str = "v1"
    api_title: str = "Squad Integrity API"
    api_description: str = "Cross-layer consistency checks and repair for squad statistics"
    cors_origins: list[str] = ["http://localhost:5173"]


@lru_cache
def get_settings() -> IntegritySettings:
    """Get cached settings instance.

    Returns:
        IntegritySettings loaded from environment.
    """
    return IntegritySettings()
