"""Three-way comparison rules.

Compares each non-substitute selection entry against its derived event stat,
and the derived stat against the player's aggregate rollup:
- Missing derived stat
- Position disagreement
- Minutes disagreement beyond the tolerance window
- Derived minutes absent from the aggregate
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from squad_integrity.validation.constants import (
    AGGREGATION_ERROR,
    MINUTES_MISMATCH,
    MINUTES_TOLERANCE,
    MISSING_EVENT_STAT,
    POSITION_MISMATCH,
)
from squad_integrity.validation.results import (
    CrossValidationResult,
    ValidationIssue,
    make_issue,
)

if TYPE_CHECKING:
    from squad_integrity.models import DerivedEventStat, PositionEntry, SelectionRecord
    from squad_integrity.validation.snapshot import Snapshot


def exceeds_tolerance(selection_minutes: float, stat_minutes: float) -> bool:
    """Whether a minutes difference is large enough to report.

    The boundary is inclusive: a difference of exactly MINUTES_TOLERANCE passes.
    """
    return abs(stat_minutes - selection_minutes) > MINUTES_TOLERANCE


def _check_aggregate(
    snapshot: Snapshot,
    stat: DerivedEventStat,
    selection: SelectionRecord,
) -> tuple[ValidationIssue | None, float | None]:
    aggregate = snapshot.aggregates.get(stat.player_id)
    aggregate_minutes = (
        aggregate.minutes_at(stat.position) if aggregate and stat.position else None
    )

    if stat.minutes_played <= 0 or not stat.has_playing_position:
        return None, aggregate_minutes
    if aggregate_minutes:
        return None, aggregate_minutes

    issue = make_issue(
        AGGREGATION_ERROR,
        f"{snapshot.player_name(stat.player_id)} played {stat.minutes_played} min at "
        f"{stat.position} but the aggregate has no minutes there",
        event_id=stat.event_id,
        player_id=stat.player_id,
        selection_id=selection.selection_id,
        details={
            "position": stat.position,
            "stat_minutes": stat.minutes_played,
            "aggregate_minutes": aggregate_minutes or 0,
            "has_aggregate": aggregate is not None,
        },
    )
    return issue, aggregate_minutes


def compare_entry(
    snapshot: Snapshot,
    selection: SelectionRecord,
    entry: PositionEntry,
) -> tuple[list[ValidationIssue], CrossValidationResult]:
    """Compare one selection entry across all three layers.

    Args:
        snapshot: Loaded snapshot
        selection: Selection the entry belongs to
        entry: Non-substitute entry for an existing player

    Returns:
        Tuple of (issues in rule order, the three-way result)
    """
    issues: list[ValidationIssue] = []
    selection_minutes = selection.minutes_for(entry)
    label = selection.event.label if selection.event else ""
    name = snapshot.player_name(entry.player_id)

    stat = snapshot.find_event_stat(
        selection.event_id,
        entry.player_id,
        selection.period_number,
        selection.team_number,
    )
    aggregate_minutes: float | None = None

    if stat is None:
        issues.append(
            make_issue(
                MISSING_EVENT_STAT,
                f"No event stats for {name} in {label or selection.event_id}",
                event_id=selection.event_id,
                player_id=entry.player_id,
                selection_id=selection.selection_id,
                details={
                    "position": entry.position,
                    "minutes": selection_minutes,
                    "period_number": selection.period_number,
                },
            )
        )
    else:
        if stat.position != entry.position:
            issues.append(
                make_issue(
                    POSITION_MISMATCH,
                    f"{name} selected at {entry.position} but stats record {stat.position}",
                    event_id=selection.event_id,
                    player_id=entry.player_id,
                    selection_id=selection.selection_id,
                    details={
                        "selection_position": entry.position,
                        "stat_position": stat.position,
                        "stat_id": stat.stat_id,
                    },
                )
            )

        if not entry.is_substitute and exceeds_tolerance(
            selection_minutes, stat.minutes_played
        ):
            difference = stat.minutes_played - selection_minutes
            issues.append(
                make_issue(
                    MINUTES_MISMATCH,
                    f"{name} selected for {selection_minutes} min but stats record "
                    f"{stat.minutes_played} min",
                    event_id=selection.event_id,
                    player_id=entry.player_id,
                    selection_id=selection.selection_id,
                    details={
                        "selection_minutes": selection_minutes,
                        "stat_minutes": stat.minutes_played,
                        "difference": difference,
                        "stat_id": stat.stat_id,
                    },
                )
            )

        aggregate_issue, aggregate_minutes = _check_aggregate(snapshot, stat, selection)
        if aggregate_issue is not None:
            issues.append(aggregate_issue)

    result = CrossValidationResult(
        event_id=selection.event_id,
        player_id=entry.player_id,
        selection_id=selection.selection_id,
        period_number=selection.period_number,
        team_number=selection.team_number,
        selection_position=entry.position,
        selection_minutes=selection_minutes,
        stat_position=stat.position if stat else None,
        stat_minutes=stat.minutes_played if stat else None,
        aggregate_minutes=aggregate_minutes,
        has_mismatch=bool(issues),
        event_label=label,
    )
    return issues, result


def compare_selection(
    snapshot: Snapshot,
    selection: SelectionRecord,
) -> tuple[list[ValidationIssue], list[CrossValidationResult]]:
    """Compare every eligible entry of one selection, in list order.

    Substitute entries and entries naming unknown players are skipped; the
    latter are reported by the orphan scan.
    """
    issues: list[ValidationIssue] = []
    results: list[CrossValidationResult] = []
    for entry in selection.positions:
        if entry.is_substitute or entry.player_id not in snapshot.player_ids:
            continue
        entry_issues, result = compare_entry(snapshot, selection, entry)
        issues.extend(entry_issues)
        results.append(result)
    return issues, results
