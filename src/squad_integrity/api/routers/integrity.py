"""Integrity endpoints.

Provides endpoints for:
- Running a consistency check
- Repairing the findings of the most recent check
- Inspecting one player across all layers
- Rebuilding derived stats for one event
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from squad_integrity.api.dependencies import get_integrity_service
from squad_integrity.api.schemas.integrity import (
    AppearanceSchema,
    CheckResponse,
    DerivedStatSchema,
    IssueSchema,
    PlayerTrailResponse,
    RepairOutcomeSchema,
    RepairRequest,
    RepairResponse,
    ReportDeltaSchema,
    ReportSchema,
)
from squad_integrity.repair import RepairOutcome
from squad_integrity.services.integrity_service import (
    CheckRun,
    IntegrityService,
    RepairPreconditionError,
)
from squad_integrity.validation import LoadError

# Type alias for dependency injection
ServiceDep = Annotated[IntegrityService, Depends(get_integrity_service)]

router = APIRouter(prefix="/integrity", tags=["integrity"])


def _unavailable(error: LoadError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Snapshot load failed at {error.stage}: {error}",
    )


def _check_response(check: CheckRun) -> CheckResponse:
    return CheckResponse(
        run_id=check.run_id,
        checked_at=check.checked_at,
        report=ReportSchema(**check.report.to_dict()),
        issues=[IssueSchema(**issue.to_dict()) for issue in check.issues],
    )


def _outcome_response(outcome: RepairOutcome) -> RepairOutcomeSchema:
    return RepairOutcomeSchema(**outcome.to_dict())


# =============================================================================
# Check
# =============================================================================


@router.post(
    "/check",
    response_model=CheckResponse,
    status_code=status.HTTP_200_OK,
    summary="Run Check",
    description="Load all layers, validate them and return the report",
)
async def run_check(
    service: ServiceDep,
    severity: str | None = Query(
        None,
        description="Only return issues of this severity",
        pattern="^(critical|warning|info)$",
    ),
) -> CheckResponse:
    """Run a read-only consistency check.

    The report always covers every issue; the severity filter only trims the
    returned issue list.
    """
    try:
        check = await service.run_check()
    except LoadError as e:
        raise _unavailable(e) from e

    response = _check_response(check)
    if severity is not None:
        response.issues = [i for i in response.issues if i.severity == severity]
    return response


# =============================================================================
# Repair
# =============================================================================


@router.post(
    "/repair",
    response_model=RepairResponse,
    status_code=status.HTTP_200_OK,
    summary="Run Repair",
    description="Repair the most recent check's findings and re-validate",
)
async def run_repair(
    service: ServiceDep,
    request: RepairRequest | None = None,
) -> RepairResponse:
    """Repair, wait briefly, re-check and return the before/after delta.

    Returns 409 if no check has run or run_id is not the latest check, and
    503 with the applied outcome if the re-check cannot load a snapshot.
    """
    last = service.last_check
    if last is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Run a check before requesting a repair",
        )
    if request is not None and request.run_id and request.run_id != last.run_id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Check {request.run_id} is not the most recent check ({last.run_id})",
        )

    try:
        repair = await service.run_repair(last.report)
    except RepairPreconditionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except LoadError as e:
        # Repair writes are already applied; return their trail with the 503
        outcome = service.last_outcome
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "message": f"Re-validation failed at {e.stage}: {e}",
                "outcome": outcome.to_dict() if outcome else None,
            },
        ) from e

    return RepairResponse(
        outcome=_outcome_response(repair.outcome),
        before=ReportSchema(**repair.before.report.to_dict()),
        after=_check_response(repair.after),
        delta=ReportDeltaSchema(**repair.delta.to_dict()),
    )


# =============================================================================
# Diagnostics
# =============================================================================


@router.get(
    "/players/{player_id}",
    response_model=PlayerTrailResponse,
    status_code=status.HTTP_200_OK,
    summary="Player Trail",
    description="Selection entries, derived stats and aggregate for one player",
)
async def get_player_trail(player_id: str, service: ServiceDep) -> PlayerTrailResponse:
    """Inspect one player across all three layers."""
    try:
        trail = await service.inspect_player(player_id)
    except LoadError as e:
        raise _unavailable(e) from e

    if trail is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Player {player_id} not found",
        )

    return PlayerTrailResponse(
        player_id=trail.player.player_id,
        name=trail.player.name,
        appearances=[
            AppearanceSchema(
                selection_id=a.selection_id,
                event_id=a.event_id,
                event_label=a.event_label,
                period_number=a.period_number,
                team_number=a.team_number,
                position=a.position,
                minutes=a.minutes,
                is_substitute=a.is_substitute,
                source_list=a.source_list,
            )
            for a in trail.appearances
        ],
        derived_stats=[
            DerivedStatSchema(
                stat_id=s.stat_id,
                event_id=s.event_id,
                position=s.position,
                minutes_played=s.minutes_played,
                is_substitute=s.is_substitute,
                period_number=s.period_number,
                team_number=s.team_number,
            )
            for s in trail.derived_stats
        ],
        minutes_by_position=trail.minutes_by_position,
        selected_minutes=trail.selected_minutes,
        derived_minutes=trail.derived_minutes,
        aggregate_minutes=trail.aggregate_minutes,
        issues=[IssueSchema(**issue.to_dict()) for issue in trail.issues],
    )


@router.post(
    "/events/{event_id}/repair",
    response_model=RepairOutcomeSchema,
    status_code=status.HTTP_200_OK,
    summary="Repair Event",
    description="Delete one event's derived stats and regenerate them",
)
async def repair_event(event_id: str, service: ServiceDep) -> RepairOutcomeSchema:
    """Rebuild derived stats for one event."""
    outcome = await service.repair_event(event_id)
    return _outcome_response(outcome)
