"""Unit tests for database credential resolution."""

from __future__ import annotations

import json
from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, NoCredentialsError

from squad_integrity.config.credentials import (
    CredentialsError,
    DatabaseCredentials,
    clear_credentials_cache,
    get_db_credentials,
)

DB_ENV = ("DB_HOST", "DB_PORT", "DB_NAME", "DB_USER", "DB_PASSWORD", "SQUAD_DB_SECRET_ID")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Start every test without DB_* variables or cached credentials."""
    for name in DB_ENV:
        monkeypatch.delenv(name, raising=False)
    clear_credentials_cache()
    yield
    clear_credentials_cache()


@pytest.fixture
def mock_secret_data() -> dict[str, str]:
    """Sample secret data matching the RDS secret layout."""
    return {
        "host": "10.0.0.12",
        "port": "5433",
        "dbname": "squads",
        "username": "integrity",
        "password": "secret123",
    }


@pytest.fixture
def mock_boto_client(mock_secret_data: dict[str, str]) -> MagicMock:
    """Mock boto3 Secrets Manager client."""
    client = MagicMock()
    client.get_secret_value.return_value = {"SecretString": json.dumps(mock_secret_data)}
    return client


class TestDatabaseCredentials:
    """Tests for DatabaseCredentials dataclass."""

    def test_dsn_dict(self) -> None:
        """DSN uses asyncpg keyword names."""
        creds = DatabaseCredentials(
            host="localhost",
            port=5432,
            database="testdb",
            username="user",
            password="pass",
        )
        assert creds.dsn == {
            "host": "localhost",
            "port": 5432,
            "database": "testdb",
            "user": "user",
            "password": "pass",
        }

    def test_immutable(self) -> None:
        creds = DatabaseCredentials("localhost", 5432, "testdb", "user", "pass")
        with pytest.raises(AttributeError):
            creds.host = "newhost"  # type: ignore[misc]


class TestEnvironmentCredentials:
    """Credentials from DB_* variables."""

    def test_uses_environment_first(
        self, monkeypatch: pytest.MonkeyPatch, mock_boto_client: MagicMock
    ) -> None:
        monkeypatch.setenv("DB_HOST", "db.local")
        monkeypatch.setenv("DB_NAME", "squads")
        monkeypatch.setenv("DB_USER", "dev")
        monkeypatch.setenv("DB_PASSWORD", "devpass")

        with patch(
            "squad_integrity.config.credentials.boto3.client",
            return_value=mock_boto_client,
        ):
            creds = get_db_credentials()

        assert creds.host == "db.local"
        assert creds.port == 5432
        assert creds.username == "dev"
        mock_boto_client.get_secret_value.assert_not_called()

    def test_custom_port(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_HOST", "db.local")
        monkeypatch.setenv("DB_PORT", "6543")
        monkeypatch.setenv("DB_NAME", "squads")
        monkeypatch.setenv("DB_USER", "dev")
        monkeypatch.setenv("DB_PASSWORD", "devpass")

        assert get_db_credentials().port == 6543


class TestSecretsManagerCredentials:
    """Credentials from AWS Secrets Manager."""

    def test_retrieves_credentials(
        self, mock_boto_client: MagicMock, mock_secret_data: dict[str, str]
    ) -> None:
        with patch(
            "squad_integrity.config.credentials.boto3.client",
            return_value=mock_boto_client,
        ):
            creds = get_db_credentials("test-secret")

        assert creds.host == mock_secret_data["host"]
        assert creds.port == 5433
        assert creds.database == "squads"
        mock_boto_client.get_secret_value.assert_called_once_with(SecretId="test-secret")

    def test_default_secret_id_from_environment(
        self, monkeypatch: pytest.MonkeyPatch, mock_boto_client: MagicMock
    ) -> None:
        monkeypatch.setenv("SQUAD_DB_SECRET_ID", "from-env")

        with patch(
            "squad_integrity.config.credentials.boto3.client",
            return_value=mock_boto_client,
        ):
            get_db_credentials()

        mock_boto_client.get_secret_value.assert_called_once_with(SecretId="from-env")

    def test_caches_result(self, mock_boto_client: MagicMock) -> None:
        with patch(
            "squad_integrity.config.credentials.boto3.client",
            return_value=mock_boto_client,
        ):
            first = get_db_credentials("cached")
            second = get_db_credentials("cached")

        assert first is second
        assert mock_boto_client.get_secret_value.call_count == 1

    def test_clear_cache_forces_lookup(self, mock_boto_client: MagicMock) -> None:
        with patch(
            "squad_integrity.config.credentials.boto3.client",
            return_value=mock_boto_client,
        ):
            get_db_credentials("rotating")
            clear_credentials_cache()
            get_db_credentials("rotating")

        assert mock_boto_client.get_secret_value.call_count == 2

    def test_client_error(self) -> None:
        client = MagicMock()
        client.get_secret_value.side_effect = ClientError(
            {"Error": {"Code": "ResourceNotFoundException"}},
            "GetSecretValue",
        )

        with (
            patch("squad_integrity.config.credentials.boto3.client", return_value=client),
            pytest.raises(CredentialsError) as exc_info,
        ):
            get_db_credentials("missing")

        assert "ResourceNotFoundException" in str(exc_info.value)

    def test_no_aws_credentials(self) -> None:
        client = MagicMock()
        client.get_secret_value.side_effect = NoCredentialsError()

        with (
            patch("squad_integrity.config.credentials.boto3.client", return_value=client),
            pytest.raises(CredentialsError, match="DB_"),
        ):
            get_db_credentials("any")

    def test_invalid_json(self) -> None:
        client = MagicMock()
        client.get_secret_value.return_value = {"SecretString": "not json"}

        with (
            patch("squad_integrity.config.credentials.boto3.client", return_value=client),
            pytest.raises(CredentialsError, match="not valid JSON"),
        ):
            get_db_credentials("broken")

    def test_incomplete_secret(self) -> None:
        client = MagicMock()
        client.get_secret_value.return_value = {
            "SecretString": json.dumps({"host": "h", "username": "u"})
        }

        with (
            patch("squad_integrity.config.credentials.boto3.client", return_value=client),
            pytest.raises(CredentialsError, match="incomplete"),
        ):
            get_db_credentials("partial")
