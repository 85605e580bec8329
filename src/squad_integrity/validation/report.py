"""Issue classification and reporting.

summarize() is a pure function of its inputs: identical issues and results
always yield an equal ReconciliationReport, and the inputs are never
mutated. Run identity and timestamps belong to the caller, not the report.

Example usage:
    report = summarize(run.issues, run.results)
    print(report.issues_by_severity["critical"])

    delta = diff_reports(before, after)
    if delta.improved:
        print(f"Resolved {len(delta.resolved_orphan_ids)} orphaned players")
"""

from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from squad_integrity.validation.constants import ISSUE_KINDS, ORPHANED_SELECTION, SEVERITIES

if TYPE_CHECKING:
    from collections.abc import Iterable

    from squad_integrity.validation.cross_layer import ValidationRun
    from squad_integrity.validation.results import (
        CrossValidationResult,
        ValidationIssue,
    )


@dataclass(frozen=True, slots=True)
class ReconciliationReport:
    """Summary of one validation run.

    Attributes:
        total_checks: Number of individual checks performed
        total_issues: Number of issues found
        issues_by_severity: Count per severity, every severity present
        issues_by_kind: Count per issue kind, every kind present
        orphan_count: Orphaned references found
        orphaned_player_ids: Distinct unknown player ids, sorted
        mismatch_count: Compared entries with at least one finding
        affected_player_ids: Distinct player ids named by any issue, sorted
    """

    total_checks: int
    total_issues: int
    issues_by_severity: dict[str, int] = field(default_factory=dict)
    issues_by_kind: dict[str, int] = field(default_factory=dict)
    orphan_count: int = 0
    orphaned_player_ids: tuple[str, ...] = ()
    mismatch_count: int = 0
    affected_player_ids: tuple[str, ...] = ()

    @property
    def is_clean(self) -> bool:
        return self.total_issues == 0

    @property
    def critical_count(self) -> int:
        return self.issues_by_severity.get("critical", 0)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["orphaned_player_ids"] = list(self.orphaned_player_ids)
        data["affected_player_ids"] = list(self.affected_player_ids)
        return data


def summarize(
    issues: Iterable[ValidationIssue],
    results: Iterable[CrossValidationResult],
    *,
    total_checks: int | None = None,
) -> ReconciliationReport:
    """Aggregate issues and results into a report.

    Args:
        issues: Findings from a validation run
        results: Three-way results from the same run
        total_checks: Checks performed; defaults to the number of results

    Returns:
        ReconciliationReport with zero-filled severity and kind counts
    """
    issue_list = list(issues)
    result_list = list(results)

    severity_counts = Counter(i.severity for i in issue_list)
    kind_counts = Counter(i.kind for i in issue_list)

    orphans = [i for i in issue_list if i.kind == ORPHANED_SELECTION]
    orphaned_ids = sorted({i.player_id for i in orphans if i.player_id})
    affected_ids = sorted({i.player_id for i in issue_list if i.player_id})

    return ReconciliationReport(
        total_checks=len(result_list) if total_checks is None else total_checks,
        total_issues=len(issue_list),
        issues_by_severity={s: severity_counts.get(s, 0) for s in SEVERITIES},
        issues_by_kind={k: kind_counts.get(k, 0) for k in ISSUE_KINDS},
        orphan_count=len(orphans),
        orphaned_player_ids=tuple(orphaned_ids),
        mismatch_count=sum(1 for r in result_list if r.has_mismatch),
        affected_player_ids=tuple(affected_ids),
    )


def summarize_run(run: ValidationRun) -> ReconciliationReport:
    """Summarize a ValidationRun using its own check count."""
    return summarize(run.issues, run.results, total_checks=run.total_checks)


@dataclass(frozen=True, slots=True)
class ReportDelta:
    """Difference between a pre-repair and a post-repair report.

    Deltas are after minus before, so negative numbers are improvements.
    """

    issues_before: int
    issues_after: int
    severity_deltas: dict[str, int] = field(default_factory=dict)
    kind_deltas: dict[str, int] = field(default_factory=dict)
    resolved_orphan_ids: tuple[str, ...] = ()
    new_orphan_ids: tuple[str, ...] = ()
    resolved_player_ids: tuple[str, ...] = ()

    @property
    def improved(self) -> bool:
        return self.issues_after < self.issues_before

    @property
    def resolved_count(self) -> int:
        return max(0, self.issues_before - self.issues_after)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key in ("resolved_orphan_ids", "new_orphan_ids", "resolved_player_ids"):
            data[key] = list(data[key])
        data["improved"] = self.improved
        return data


def diff_reports(before: ReconciliationReport, after: ReconciliationReport) -> ReportDelta:
    """Compare two reports for the same store."""
    before_orphans = set(before.orphaned_player_ids)
    after_orphans = set(after.orphaned_player_ids)

    return ReportDelta(
        issues_before=before.total_issues,
        issues_after=after.total_issues,
        severity_deltas={
            s: after.issues_by_severity.get(s, 0) - before.issues_by_severity.get(s, 0)
            for s in SEVERITIES
        },
        kind_deltas={
            k: after.issues_by_kind.get(k, 0) - before.issues_by_kind.get(k, 0)
            for k in ISSUE_KINDS
        },
        resolved_orphan_ids=tuple(sorted(before_orphans - after_orphans)),
        new_orphan_ids=tuple(sorted(after_orphans - before_orphans)),
        resolved_player_ids=tuple(
            sorted(set(before.affected_player_ids) - set(after.affected_player_ids))
        ),
    )
