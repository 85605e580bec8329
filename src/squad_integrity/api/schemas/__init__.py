"""Pydantic schemas for the integrity API."""

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
    StepSchema,
)

__all__ = [
    "AppearanceSchema",
    "CheckResponse",
    "DerivedStatSchema",
    "IssueSchema",
    "PlayerTrailResponse",
    "RepairOutcomeSchema",
    "RepairRequest",
    "RepairResponse",
    "ReportDeltaSchema",
    "ReportSchema",
    "StepSchema",
]
