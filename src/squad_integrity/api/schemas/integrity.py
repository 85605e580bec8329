"""Integrity API Pydantic schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

# =============================================================================
# Issues and Reports
# =============================================================================


class IssueSchema(BaseModel):
    """A single inconsistency."""

    kind: str = Field(description="Issue kind, e.g. orphaned_selection")
    severity: Literal["critical", "warning", "info"] = Field(description="Severity")
    description: str = Field(description="Human-readable summary")
    event_id: str | None = Field(default=None, description="Event concerned")
    player_id: str | None = Field(default=None, description="Player concerned")
    selection_id: str | None = Field(default=None, description="Selection concerned")
    details: dict[str, Any] = Field(
        default_factory=dict, description="Structured values for debugging"
    )


class ReportSchema(BaseModel):
    """Summary of one validation run."""

    total_checks: int = Field(ge=0, description="Checks performed")
    total_issues: int = Field(ge=0, description="Issues found")
    issues_by_severity: dict[str, int] = Field(description="Count per severity")
    issues_by_kind: dict[str, int] = Field(description="Count per issue kind")
    orphan_count: int = Field(ge=0, description="Orphaned references")
    orphaned_player_ids: list[str] = Field(
        default_factory=list, description="Distinct unknown player ids"
    )
    mismatch_count: int = Field(ge=0, description="Compared entries with findings")
    affected_player_ids: list[str] = Field(
        default_factory=list, description="Player ids named by any issue"
    )


class CheckResponse(BaseModel):
    """Result of POST /integrity/check."""

    run_id: str = Field(description="Id to pass to the repair endpoint")
    checked_at: datetime = Field(description="When the report was produced")
    report: ReportSchema
    issues: list[IssueSchema] = Field(default_factory=list)


# =============================================================================
# Repair
# =============================================================================


class RepairRequest(BaseModel):
    """Body of POST /integrity/repair."""

    run_id: str | None = Field(
        default=None,
        description="Check to repair; must be the most recent check when given",
    )


class StepSchema(BaseModel):
    """One repair step."""

    name: str = Field(description="Step name")
    status: Literal["pending", "retrying", "fallback", "done", "failed"]
    history: list[str] = Field(description="States visited, in order")
    error: str | None = Field(default=None, description="Failure message")
    warnings: list[str] = Field(default_factory=list, description="Fallback notices")


class RepairOutcomeSchema(BaseModel):
    """Per-step outcome of a repair."""

    success: bool = Field(description="Whether every step finished DONE")
    steps: list[StepSchema]
    purged_references: int = Field(ge=0, description="Entries removed from selections")
    selections_cleaned: int = Field(ge=0, description="Selections modified")
    derived_stat_count: int | None = Field(
        default=None, description="Derived rows counted after repair"
    )
    aggregates_recomputed: list[str] = Field(default_factory=list)
    aggregates_failed: list[str] = Field(default_factory=list)
    aggregates_skipped: list[str] = Field(default_factory=list)
    log: list[str] = Field(default_factory=list, description="Action trail")
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ReportDeltaSchema(BaseModel):
    """After-minus-before differences between two reports."""

    issues_before: int = Field(ge=0)
    issues_after: int = Field(ge=0)
    severity_deltas: dict[str, int]
    kind_deltas: dict[str, int]
    resolved_orphan_ids: list[str] = Field(default_factory=list)
    new_orphan_ids: list[str] = Field(default_factory=list)
    resolved_player_ids: list[str] = Field(default_factory=list)
    improved: bool = Field(description="Whether fewer issues remain")


class RepairResponse(BaseModel):
    """Result of POST /integrity/repair."""

    outcome: RepairOutcomeSchema
    before: ReportSchema
    after: CheckResponse
    delta: ReportDeltaSchema


# =============================================================================
# Player Trail
# =============================================================================


class AppearanceSchema(BaseModel):
    """A player's entry in one selection."""

    selection_id: str
    event_id: str
    event_label: str
    period_number: int
    team_number: int | None = None
    position: str | None = None
    minutes: float
    is_substitute: bool
    source_list: Literal["positions", "substitutes"]


class DerivedStatSchema(BaseModel):
    """One derived event stat row."""

    stat_id: str
    event_id: str
    position: str | None = None
    minutes_played: float
    is_substitute: bool
    period_number: int | None = None
    team_number: int | None = None


class PlayerTrailResponse(BaseModel):
    """Three-way view of one player."""

    player_id: str
    name: str
    appearances: list[AppearanceSchema] = Field(default_factory=list)
    derived_stats: list[DerivedStatSchema] = Field(default_factory=list)
    minutes_by_position: dict[str, float] = Field(default_factory=dict)
    selected_minutes: float = Field(description="Non-substitute selected minutes")
    derived_minutes: float = Field(description="Sum of derived minutes")
    aggregate_minutes: float = Field(description="Sum of aggregate minutes")
    issues: list[IssueSchema] = Field(default_factory=list)
