"""FastAPI dependency injection providers.

Both references are set during app lifespan startup and cleared on shutdown.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from squad_integrity.services.db import DatabaseService
    from squad_integrity.services.integrity_service import IntegrityService


_db_service: DatabaseService | None = None
_integrity_service: IntegrityService | None = None


def set_db_service(db: DatabaseService | None) -> None:
    """Set the global database service reference.

    Args:
        db: The DatabaseService instance, or None to clear.
    """
    global _db_service
    _db_service = db


def set_integrity_service(service: IntegrityService | None) -> None:
    """Set the global integrity service reference.

    Args:
        service: The IntegrityService instance, or None to clear.
    """
    global _integrity_service
    _integrity_service = service


async def get_db() -> AsyncGenerator[DatabaseService, None]:
    """Dependency to get the database service.

    Raises:
        RuntimeError: If database is not initialized.
    """
    if _db_service is None:
        raise RuntimeError("Database service not initialized")
    yield _db_service


async def get_integrity_service() -> AsyncGenerator[IntegrityService, None]:
    """Dependency to get the integrity engine.

    Raises:
        RuntimeError: If the engine is not initialized.

    Example:
        @router.post("/check")
        async def check(service: IntegrityService = Depends(get_integrity_service)):
            return await service.run_check()
    """
    if _integrity_service is None:
        raise RuntimeError("Integrity service not initialized")
    yield _integrity_service
