"""Unit tests for engine settings."""

from __future__ import annotations

import pytest

from squad_integrity.config.settings import IntegritySettings, get_settings


class TestIntegritySettings:
    """Tests for IntegritySettings defaults and overrides."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in (
            "INTEGRITY_RETRY_BASE_DELAY",
            "INTEGRITY_AGGREGATE_BATCH_SIZE",
            "INTEGRITY_VALIDATION_WORKERS",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = IntegritySettings()

        assert settings.retry_base_delay == 0.5
        assert settings.aggregate_batch_size == 25
        assert settings.revalidation_delay_seconds == 1.0
        assert settings.validation_workers == 1
        assert settings.page_size == 500
        assert settings.db_min_connections == 2
        assert settings.db_max_connections == 10
        assert settings.db_secret_id is None
        assert settings.api_version == "v1"

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INTEGRITY_AGGREGATE_BATCH_SIZE", "50")
        monkeypatch.setenv("INTEGRITY_VALIDATION_WORKERS", "4")

        settings = IntegritySettings()

        assert settings.aggregate_batch_size == 50
        assert settings.validation_workers == 4

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()
