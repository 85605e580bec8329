"""Squad Integrity API - FastAPI Application.

Caller surface for the integrity engine. Provides:
- FastAPI app with lifespan management for the database pool and engine
- CORS configuration for the admin frontend
- Versioned integrity routes and unversioned health routes

Usage:
    # Development
    uvicorn squad_integrity.api.main:app --reload

    # Production
    uvicorn squad_integrity.api.main:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from squad_integrity.api.dependencies import set_db_service, set_integrity_service
from squad_integrity.api.routers import health, integrity
from squad_integrity.config import get_settings
from squad_integrity.services.db import DatabaseService, build_data_access
from squad_integrity.services.integrity_service import IntegrityService

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Connect the pool and build the engine on startup; close on shutdown."""
    settings = get_settings()

    logger.info("Starting Squad Integrity API...")

    db = DatabaseService(
        min_connections=settings.db_min_connections,
        max_connections=settings.db_max_connections,
        secret_id=settings.db_secret_id,
    )

    try:
        await db.connect()
        set_db_service(db)
        set_integrity_service(
            IntegrityService(
                build_data_access(db, page_size=settings.page_size),
                settings=settings,
            )
        )
        health.set_start_time(time.time())

        logger.info("Database connection established")

        yield

    finally:
        logger.info("Shutting down Squad Integrity API...")
        set_integrity_service(None)
        set_db_service(None)
        await db.disconnect()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(integrity.router, prefix=f"/api/{settings.api_version}")

    @app.get(f"/api/{settings.api_version}/info")
    async def api_info() -> dict[str, str]:
        """API version and metadata."""
        return {
            "api_version": settings.api_version,
            "title": settings.api_title,
            "description": settings.api_description,
        }

    return app


app = create_app()
