"""Cross-layer validation over a loaded snapshot.

Runs every rule in squad_integrity.validation.rules against one Snapshot and
returns the collected findings. Validation is read-only and never raises for
inconsistent data; findings are returned as ValidationIssue values.

Example usage:
    from squad_integrity.validation import CrossLayerValidator

    validator = CrossLayerValidator(workers=4)
    run = validator.validate(snapshot)

    for issue in run.issues:
        print(f"{issue.severity}: {issue.description}")
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from squad_integrity.validation.constants import MISSING_EVENT_STAT, ORPHANED_SELECTION
from squad_integrity.validation.rules import (
    check_derived_stats,
    check_malformed_entries,
    check_players_without_stats,
    compare_selection,
    scan_orphans,
)

if TYPE_CHECKING:
    from squad_integrity.models import SelectionRecord
    from squad_integrity.validation.results import (
        CrossValidationResult,
        ValidationIssue,
    )
    from squad_integrity.validation.snapshot import Snapshot

logger = logging.getLogger(__name__)

_Chunk = tuple[list["ValidationIssue"], list["CrossValidationResult"]]


@dataclass(frozen=True, slots=True)
class ValidationRun:
    """Everything one validation pass produced.

    Attributes:
        issues: Findings sorted by (event id, player id, kind)
        results: One three-way result per compared entry, in selection order
        references_examined: Player references scanned for orphans
        orphaned_references: References naming unknown players
        players_examined: Players checked for missing stats
        stats_examined: Derived rows sanity-checked
    """

    issues: tuple[ValidationIssue, ...] = field(default_factory=tuple)
    results: tuple[CrossValidationResult, ...] = field(default_factory=tuple)
    references_examined: int = 0
    orphaned_references: int = 0
    players_examined: int = 0
    stats_examined: int = 0

    @property
    def total_checks(self) -> int:
        return (
            self.references_examined
            + len(self.results)
            + self.players_examined
            + self.stats_examined
        )


def _compare_chunk(snapshot: Snapshot, selections: list[SelectionRecord]) -> _Chunk:
    issues: list[ValidationIssue] = []
    results: list[CrossValidationResult] = []
    for selection in selections:
        found, compared = compare_selection(snapshot, selection)
        issues.extend(found)
        results.extend(compared)
    return issues, results


class CrossLayerValidator:
    """Validator for consistency across selections, derived stats and aggregates.

    Runs, over the same snapshot:
    - Malformed entries quarantined at load time
    - Pass A: orphan scan over every position and substitute entry
    - Pass B: three-way comparison of each non-substitute entry
    - Derived stat sanity checks
    - Players with no derived stats

    Pass B comparisons are independent, so they may be fanned out over a
    bounded thread pool. Chunks are merged in selection order and the final
    issue list is sorted, so output does not depend on the worker count.

    Attributes:
        workers: Thread pool size for Pass B; 1 runs inline
    """

    def __init__(self, *, workers: int = 1) -> None:
        self.workers = max(1, workers)

    def _compare(self, snapshot: Snapshot) -> _Chunk:
        selections = list(snapshot.selections)
        if self.workers == 1 or len(selections) < 2:
            return _compare_chunk(snapshot, selections)

        size = -(-len(selections) // self.workers)
        chunks = [selections[i : i + size] for i in range(0, len(selections), size)]

        issues: list[ValidationIssue] = []
        results: list[CrossValidationResult] = []
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            for found, compared in pool.map(
                lambda chunk: _compare_chunk(snapshot, chunk), chunks
            ):
                issues.extend(found)
                results.extend(compared)
        return issues, results

    def validate(self, snapshot: Snapshot) -> ValidationRun:
        """Run every rule against the snapshot.

        Args:
            snapshot: Loaded snapshot

        Returns:
            ValidationRun with sorted issues and per-entry results
        """
        issues: list[ValidationIssue] = []

        issues.extend(check_malformed_entries(snapshot.malformed))

        orphans, references = scan_orphans(snapshot)
        issues.extend(orphans)
        logger.info(
            f"Orphan scan: {len(orphans)} of {references} references point at missing players"
        )

        compared_issues, results = self._compare(snapshot)
        issues.extend(compared_issues)

        issues.extend(check_derived_stats(snapshot.event_stats))

        without_stats = {
            i.player_id for i in compared_issues if i.kind == MISSING_EVENT_STAT and i.player_id
        }
        issues.extend(check_players_without_stats(snapshot, exclude=without_stats))

        issues.sort(key=lambda i: i.sort_key())

        logger.info(
            f"Validation found {len(issues)} issues across {len(results)} compared entries"
        )

        return ValidationRun(
            issues=tuple(issues),
            results=tuple(results),
            references_examined=references,
            orphaned_references=sum(1 for i in orphans if i.kind == ORPHANED_SELECTION),
            players_examined=len(snapshot.player_ids),
            stats_examined=len(snapshot.event_stats),
        )
