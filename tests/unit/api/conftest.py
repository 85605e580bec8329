"""Pytest fixtures for API tests."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.testclient import TestClient

from squad_integrity.api.dependencies import set_db_service, set_integrity_service
from squad_integrity.api.routers import health, integrity
from squad_integrity.config import get_settings
from squad_integrity.services.integrity_service import IntegrityService

if TYPE_CHECKING:
    from collections.abc import Generator

    from conftest import InMemoryStore

    from squad_integrity.config.settings import IntegritySettings


@pytest.fixture
def mock_db_service() -> MagicMock:
    """Create a mock DatabaseService."""
    mock = MagicMock()
    mock.is_connected = True
    mock.fetchval = AsyncMock(return_value=1)
    mock.fetch = AsyncMock(return_value=[])
    mock.fetchrow = AsyncMock(return_value=None)
    mock.execute = AsyncMock(return_value="OK")
    mock.connect = AsyncMock()
    mock.disconnect = AsyncMock()
    return mock


@pytest.fixture
def integrity_service(
    store: InMemoryStore, fast_settings: IntegritySettings
) -> IntegrityService:
    """Real engine over the in-memory store."""
    return IntegrityService(store.access(), settings=fast_settings)


@pytest.fixture
def test_client(
    mock_db_service: MagicMock, integrity_service: IntegrityService
) -> Generator[TestClient, None, None]:
    """Create a test client with a mocked database and an in-memory engine.

    This bypasses the lifespan context manager so no pool is created.
    """
    settings = get_settings()

    # Create app without lifespan for testing
    app = FastAPI(title="Test App")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(integrity.router, prefix="/api/v1")

    set_db_service(mock_db_service)
    set_integrity_service(integrity_service)

    client = TestClient(app)
    yield client

    set_integrity_service(None)
    set_db_service(None)
