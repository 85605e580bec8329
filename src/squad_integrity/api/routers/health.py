"""Health endpoints for the integrity service.

`/health` reports store connectivity and the outcome of the engine's most
recent check; /health/live and /health/ready answer load balancers.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from squad_integrity import __version__
from squad_integrity.api.dependencies import get_db, get_integrity_service
from squad_integrity.services.db import DatabaseError, DatabaseService
from squad_integrity.services.integrity_service import IntegrityService

DbDep = Annotated[DatabaseService, Depends(get_db)]
EngineDep = Annotated[IntegrityService, Depends(get_integrity_service)]

router = APIRouter(tags=["health"])

_start_time: float = time.time()


def set_start_time(start: float) -> None:
    """Record when the lifespan finished starting up."""
    global _start_time
    _start_time = start


class StoreStatus(BaseModel):
    """Whether the store answers, and how quickly."""

    connected: bool
    latency_ms: float | None = None
    error: str | None = None


class LastCheckStatus(BaseModel):
    """Summary of the engine's most recent check, if any has run."""

    run_id: str
    checked_at: datetime
    total_issues: int
    critical_issues: int
    orphan_count: int


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float
    timestamp: str
    database: StoreStatus
    last_check: LastCheckStatus | None = None


async def _ping(db: DatabaseService) -> StoreStatus:
    start = time.perf_counter()
    try:
        answered = await db.fetchval("SELECT 1") == 1
    except DatabaseError as e:
        return StoreStatus(connected=False, error=str(e))
    return StoreStatus(
        connected=answered,
        latency_ms=round((time.perf_counter() - start) * 1000, 2),
    )


def _last_check(engine: IntegrityService) -> LastCheckStatus | None:
    check = engine.last_check
    if check is None:
        return None
    return LastCheckStatus(
        run_id=check.run_id,
        checked_at=check.checked_at,
        total_issues=check.report.total_issues,
        critical_issues=check.report.critical_count,
        orphan_count=check.report.orphan_count,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Store connectivity plus the most recent integrity check",
)
async def health_check(db: DbDep, engine: EngineDep) -> HealthResponse:
    """Degraded when the store does not answer; findings never degrade health."""
    store = await _ping(db)
    return HealthResponse(
        status="healthy" if store.connected else "degraded",
        version=__version__,
        uptime_seconds=time.time() - _start_time,
        timestamp=datetime.now(UTC).isoformat(),
        database=store,
        last_check=_last_check(engine),
    )


@router.get("/health/live", summary="Liveness Check")
async def liveness() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/health/ready",
    summary="Readiness Check",
    dependencies=[Depends(get_integrity_service)],
)
async def readiness(db: DbDep) -> dict[str, str]:
    """503 until the store answers a ping."""
    if not (await _ping(db)).connected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not available",
        )
    return {"status": "ready"}
