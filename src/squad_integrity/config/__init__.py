"""Configuration management."""

from squad_integrity.config.credentials import (
    CredentialsError,
    DatabaseCredentials,
    clear_credentials_cache,
    get_db_credentials,
)
from squad_integrity.config.settings import IntegritySettings, get_settings

__all__ = [
    "CredentialsError",
    "DatabaseCredentials",
    "IntegritySettings",
    "clear_credentials_cache",
    "get_db_credentials",
    "get_settings",
]
