"""Validation finding types.

Issues are findings, not errors: they are always collected and returned,
never raised.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from squad_integrity.validation.constants import KIND_SEVERITY

IssueKind = Literal[
    "orphaned_selection",
    "missing_player",
    "missing_event_stat",
    "position_mismatch",
    "minutes_mismatch",
    "aggregation_error",
    "invalid_stats",
    "malformed_entry",
]
Severity = Literal["critical", "warning", "info"]


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """A single inconsistency found during a validation run.

    Attributes:
        kind: Issue category
        severity: "critical" for broken references or missing derived data,
                  "warning" for drift between layers, "info" for hygiene
        description: Human-readable summary
        event_id: Event the issue concerns, if any
        player_id: Player the issue concerns, if any
        selection_id: Selection record the issue concerns, if any
        details: Structured values for debugging and repair
    """

    kind: IssueKind
    severity: Severity
    description: str
    event_id: str | None = None
    player_id: str | None = None
    selection_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def sort_key(self) -> tuple[str, str, str]:
        """Stable ordering key: event id, then player id, then kind."""
        return (self.event_id or "", self.player_id or "", self.kind)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class CrossValidationResult:
    """Three-way view of one (player, event) selection entry.

    Attributes:
        event_id: Event examined
        player_id: Player examined
        selection_id: Selection the entry came from
        period_number: Period of the selection
        team_number: Team ordinal of the selection
        selection_position: Position according to the selection
        selection_minutes: Minutes according to the selection
        stat_position: Position on the derived stat, None if missing
        stat_minutes: Minutes on the derived stat, None if missing
        aggregate_minutes: Aggregate minutes at the derived position, None if
                           there is no aggregate or no derived stat
        has_mismatch: Whether any rule fired for this entry
        event_label: Readable event description
    """

    event_id: str
    player_id: str
    selection_id: str
    period_number: int
    team_number: int | None
    selection_position: str | None
    selection_minutes: float
    stat_position: str | None
    stat_minutes: float | None
    aggregate_minutes: float | None
    has_mismatch: bool
    event_label: str = ""

    @property
    def has_derived_stat(self) -> bool:
        return self.stat_minutes is not None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def make_issue(
    kind: IssueKind,
    description: str,
    *,
    event_id: str | None = None,
    player_id: str | None = None,
    selection_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> ValidationIssue:
    """Create an issue with the severity policy for its kind."""
    severity: Severity = KIND_SEVERITY[kind]  # type: ignore[assignment]
    return ValidationIssue(
        kind=kind,
        severity=severity,
        description=description,
        event_id=event_id,
        player_id=player_id,
        selection_id=selection_id,
        details=details or {},
    )
