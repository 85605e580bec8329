"""Sanity rules for derived event stats on their own.

These do not compare layers; they flag rows the regenerator should never
have produced.
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from squad_integrity.validation.constants import INVALID_STATS
from squad_integrity.validation.results import ValidationIssue, make_issue

if TYPE_CHECKING:
    from collections.abc import Iterable

    from squad_integrity.models import DerivedEventStat


def check_derived_stats(event_stats: Iterable[DerivedEventStat]) -> list[ValidationIssue]:
    """Flag substitute rows with positions, empty starts and duplicate rows.

    Args:
        event_stats: Derived rows from the snapshot

    Returns:
        invalid_stats issues; duplicates are reported once per key
    """
    stats = list(event_stats)
    issues: list[ValidationIssue] = []

    for stat in stats:
        if stat.is_substitute and stat.has_playing_position:
            issues.append(
                make_issue(
                    INVALID_STATS,
                    f"Substitute row {stat.stat_id} carries playing position {stat.position}",
                    event_id=stat.event_id,
                    player_id=stat.player_id,
                    details={
                        "rule": "substitute_with_position",
                        "stat_id": stat.stat_id,
                        "position": stat.position,
                    },
                )
            )
        elif (
            not stat.is_substitute
            and stat.minutes_played == 0
            and stat.has_playing_position
        ):
            issues.append(
                make_issue(
                    INVALID_STATS,
                    f"Row {stat.stat_id} has position {stat.position} but 0 minutes",
                    event_id=stat.event_id,
                    player_id=stat.player_id,
                    details={
                        "rule": "zero_minutes_with_position",
                        "stat_id": stat.stat_id,
                        "position": stat.position,
                    },
                )
            )

    keys = Counter(
        (s.event_id, s.player_id, s.period_number, s.team_number, s.position)
        for s in stats
    )
    for (event_id, player_id, period, team, position), count in keys.items():
        if count < 2:
            continue
        issues.append(
            make_issue(
                INVALID_STATS,
                f"{count} duplicate rows for player {player_id} at {position} "
                f"(period {period})",
                event_id=event_id,
                player_id=player_id,
                details={
                    "rule": "duplicate_rows",
                    "count": count,
                    "position": position,
                    "period_number": period,
                    "team_number": team,
                },
            )
        )

    return issues
