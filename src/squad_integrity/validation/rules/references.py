"""Reference validation rules.

Checks that work on player identity rather than statistic values:
- Orphans: selection entries naming a player that no longer exists
- Malformed: list elements quarantined at parse time
- Missing players: players that exist but never accrued a derived row
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from squad_integrity.validation.constants import (
    MALFORMED_ENTRY,
    MISSING_PLAYER,
    ORPHANED_SELECTION,
)
from squad_integrity.validation.results import ValidationIssue, make_issue

if TYPE_CHECKING:
    from collections.abc import Iterable

    from squad_integrity.models import MalformedEntry, SelectionRecord
    from squad_integrity.validation.snapshot import Snapshot


def scan_selection_orphans(
    selection: SelectionRecord,
    player_ids: frozenset[str],
) -> tuple[list[ValidationIssue], int]:
    """Find entries in one selection that reference unknown players.

    Both the position list and the substitute list are scanned. The position
    index is recorded for diagnostics only; repair matches by player id.

    Args:
        selection: Selection record to scan
        player_ids: Existence set from the snapshot

    Returns:
        Tuple of (orphaned_selection issues in list order, references examined)
    """
    issues: list[ValidationIssue] = []
    examined = 0

    for source_list, entries in (
        ("positions", selection.positions),
        ("substitutes", selection.substitutes),
    ):
        for index, entry in enumerate(entries):
            examined += 1
            if entry.player_id in player_ids:
                continue
            issues.append(
                make_issue(
                    ORPHANED_SELECTION,
                    f"Selection {selection.selection_id} references missing player "
                    f"{entry.player_id} ({source_list}[{index}])",
                    event_id=selection.event_id,
                    player_id=entry.player_id,
                    selection_id=selection.selection_id,
                    details={
                        "list": source_list,
                        "position_index": index,
                        "position": entry.position,
                        "team_id": selection.team_id,
                        "period_number": selection.period_number,
                    },
                )
            )

    return issues, examined


def scan_orphans(snapshot: Snapshot) -> tuple[list[ValidationIssue], int]:
    """Orphan scan over every selection in the snapshot.

    Returns:
        Tuple of (issues in selection order, total references examined)
    """
    issues: list[ValidationIssue] = []
    examined = 0
    for selection in snapshot.selections:
        found, count = scan_selection_orphans(selection, snapshot.player_ids)
        issues.extend(found)
        examined += count
    return issues, examined


def check_malformed_entries(malformed: Iterable[MalformedEntry]) -> list[ValidationIssue]:
    """Report quarantined list elements as low-severity issues."""
    return [
        make_issue(
            MALFORMED_ENTRY,
            f"Selection {m.selection_id} has an unreadable {m.source_list} entry: {m.reason}",
            event_id=m.event_id,
            selection_id=m.selection_id,
            details={
                "list": m.source_list,
                "position_index": m.index,
                "reason": m.reason,
                "raw": m.raw,
            },
        )
        for m in malformed
    ]


def check_players_without_stats(
    snapshot: Snapshot,
    exclude: Iterable[str] = (),
) -> list[ValidationIssue]:
    """Players in the roster with no derived stat row at all.

    Args:
        snapshot: Loaded snapshot
        exclude: Player ids already reported with a more specific finding

    Returns:
        missing_player issues in player id order
    """
    skipped = set(exclude)
    issues: list[ValidationIssue] = []
    for player_id in sorted(snapshot.player_ids - snapshot.stat_player_ids):
        if player_id in skipped:
            continue
        issues.append(
            make_issue(
                MISSING_PLAYER,
                f"Player {snapshot.player_name(player_id)} exists but has no event stats",
                player_id=player_id,
            )
        )
    return issues
