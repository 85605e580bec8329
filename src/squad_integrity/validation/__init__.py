"""Cross-layer validation for squad statistics.

This package provides:
- Snapshot loading: a read-only view of players, selections, derived stats
  and aggregates
- Cross-layer validation: orphan scan and three-way comparison
- Reporting: pure summaries of a run and before/after deltas

Example usage:
    from squad_integrity.validation import (
        CrossLayerValidator,
        SnapshotLoader,
        summarize_run,
    )

    snapshot = await SnapshotLoader(access).load()
    run = CrossLayerValidator().validate(snapshot)
    report = summarize_run(run)
"""

from squad_integrity.validation.cross_layer import CrossLayerValidator, ValidationRun
from squad_integrity.validation.report import (
    ReconciliationReport,
    ReportDelta,
    diff_reports,
    summarize,
    summarize_run,
)
from squad_integrity.validation.results import (
    CrossValidationResult,
    ValidationIssue,
    make_issue,
)
from squad_integrity.validation.snapshot import LoadError, Snapshot, SnapshotLoader

__all__ = [
    "CrossLayerValidator",
    "CrossValidationResult",
    "LoadError",
    "ReconciliationReport",
    "ReportDelta",
    "Snapshot",
    "SnapshotLoader",
    "ValidationIssue",
    "ValidationRun",
    "diff_reports",
    "make_issue",
    "summarize",
    "summarize_run",
]
