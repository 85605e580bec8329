"""Database credential resolution.

Credentials are looked up in two places, in order:
1. DB_* environment variables (local development, optionally from a .env file)
2. AWS Secrets Manager (deployed environments)

Usage:
    from squad_integrity.config.credentials import get_db_credentials

    creds = get_db_credentials()
    pool = await asyncpg.create_pool(**creds.dsn)
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import boto3
from botocore.exceptions import ClientError, NoCredentialsError
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_SECRET_ID = "squad-integrity"

_env_path = Path(__file__).resolve().parents[3] / ".env"
if _env_path.exists():
    load_dotenv(_env_path)
    logger.debug(f"Loaded environment from {_env_path}")


class CredentialsError(Exception):
    """Raised when database credentials cannot be resolved."""


@dataclass(frozen=True)
class DatabaseCredentials:
    """PostgreSQL connection credentials."""

    host: str
    port: int
    database: str
    username: str
    password: str

    @property
    def dsn(self) -> dict[str, Any]:
        """Keyword arguments for asyncpg.create_pool()."""
        return {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "user": self.username,
            "password": self.password,
        }


def _from_environment() -> DatabaseCredentials | None:
    host = os.getenv("DB_HOST")
    user = os.getenv("DB_USER")
    password = os.getenv("DB_PASSWORD")
    database = os.getenv("DB_NAME")

    if not (host and user and password and database):
        return None

    logger.info("Using database credentials from environment variables")
    return DatabaseCredentials(
        host=host,
        port=int(os.getenv("DB_PORT", "5432")),
        database=database,
        username=user,
        password=password,
    )


def _from_secrets_manager(secret_id: str) -> DatabaseCredentials:
    region = os.getenv("AWS_DEFAULT_REGION", "us-east-1")
    try:
        client = boto3.client("secretsmanager", region_name=region)
        response = client.get_secret_value(SecretId=secret_id)
        payload: dict[str, Any] = json.loads(response["SecretString"])
    except NoCredentialsError as e:
        raise CredentialsError(
            "AWS credentials not found; set DB_* variables for local runs"
        ) from e
    except ClientError as e:
        code = e.response.get("Error", {}).get("Code", "Unknown")
        raise CredentialsError(f"Failed to read secret '{secret_id}': {code}") from e
    except json.JSONDecodeError as e:
        raise CredentialsError(f"Secret '{secret_id}' is not valid JSON") from e

    try:
        return DatabaseCredentials(
            host=payload["host"],
            port=int(payload.get("port", 5432)),
            database=payload.get("dbname", payload.get("database", "")),
            username=payload["username"],
            password=payload["password"],
        )
    except (KeyError, ValueError) as e:
        raise CredentialsError(f"Secret '{secret_id}' is incomplete: {e}") from e


@lru_cache(maxsize=1)
def get_db_credentials(secret_id: str | None = None) -> DatabaseCredentials:
    """Resolve database credentials.

    Args:
        secret_id: Secrets Manager id. Defaults to SQUAD_DB_SECRET_ID or
            'squad-integrity'. Only consulted when DB_* variables are unset.

    Returns:
        DatabaseCredentials for the store.

    Raises:
        CredentialsError: If no source yields credentials.
    """
    creds = _from_environment()
    if creds is not None:
        return creds

    if secret_id is None:
        secret_id = os.getenv("SQUAD_DB_SECRET_ID", DEFAULT_SECRET_ID)

    logger.info(f"Fetching credentials from AWS Secrets Manager: {secret_id}")
    return _from_secrets_manager(secret_id)


def clear_credentials_cache() -> None:
    """Forget cached credentials (after a rotation)."""
    get_db_credentials.cache_clear()
