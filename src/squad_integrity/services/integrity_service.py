"""Integrity engine facade.

Exposes the two caller-facing operations and the diagnostics built on them:

- run_check: load -> validate -> report (read-only)
- run_repair: repair -> short delay -> one re-validation -> delta (mutating)
- inspect_player: three-way trail for one player
- repair_event: clear and regenerate derived stats for one event

A caller may pass an asyncio.Event as a cancellation signal. It is checked
between top-level steps only, never inside an algorithm.

Two services pointed at the same store are not mutually exclusive. Repair
removes references by player id on freshly read records, so overlapping runs
converge when re-run.

Example usage:
    service = IntegrityService(access)

    check = await service.run_check()
    if not check.report.is_clean:
        repair = await service.run_repair(check.report)
        print(repair.delta.to_dict())
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from squad_integrity.config.settings import IntegritySettings, get_settings
from squad_integrity.repair import RepairOrchestrator, RepairOutcome
from squad_integrity.services.retry_handler import RetryConfig, RetryHandler
from squad_integrity.validation import (
    CrossLayerValidator,
    LoadError,
    ReconciliationReport,
    ReportDelta,
    SnapshotLoader,
    diff_reports,
    summarize_run,
)

if TYPE_CHECKING:
    from squad_integrity.models import DerivedEventStat, Player
    from squad_integrity.services.db.protocol import DataAccess
    from squad_integrity.validation import (
        CrossValidationResult,
        Snapshot,
        ValidationIssue,
        ValidationRun,
    )

logger = logging.getLogger(__name__)


class RunCancelledError(Exception):
    """The caller's cancellation signal was set at a step boundary."""

    def __init__(self, stage: str) -> None:
        super().__init__(f"Run cancelled before {stage}")
        self.stage = stage


class RepairPreconditionError(Exception):
    """Repair requested without a matching prior check."""

    pass


@dataclass(frozen=True, slots=True)
class CheckRun:
    """One completed check.

    Attributes:
        run_id: Unique id for this check
        checked_at: When the report was produced
        report: The reconciliation report
        issues: Findings the report summarizes, sorted
        results: Three-way results the report summarizes
    """

    run_id: str
    checked_at: datetime
    report: ReconciliationReport
    issues: tuple[ValidationIssue, ...] = ()
    results: tuple[CrossValidationResult, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "checked_at": self.checked_at.isoformat(),
            "report": self.report.to_dict(),
            "issues": [i.to_dict() for i in self.issues],
        }


@dataclass(frozen=True, slots=True)
class RepairRun:
    """A repair together with the checks on either side of it."""

    before: CheckRun
    outcome: RepairOutcome
    after: CheckRun
    delta: ReportDelta

    def to_dict(self) -> dict[str, Any]:
        return {
            "before": self.before.report.to_dict(),
            "outcome": self.outcome.to_dict(),
            "after": self.after.to_dict(),
            "delta": self.delta.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class SelectionAppearance:
    """A player's entry in one selection."""

    selection_id: str
    event_id: str
    event_label: str
    period_number: int
    team_number: int | None
    position: str | None
    minutes: float
    is_substitute: bool
    source_list: str


@dataclass(frozen=True, slots=True)
class PlayerTrail:
    """Three-way view of one player across all layers.

    Attributes:
        player: The player
        appearances: Selection entries naming the player
        derived_stats: Derived rows for the player
        minutes_by_position: Aggregate minutes, empty when there is no aggregate
        issues: Issues naming the player in a fresh validation
    """

    player: Player
    appearances: tuple[SelectionAppearance, ...] = ()
    derived_stats: tuple[DerivedEventStat, ...] = ()
    minutes_by_position: dict[str, float] = field(default_factory=dict)
    issues: tuple[ValidationIssue, ...] = ()

    @property
    def selected_minutes(self) -> float:
        return sum(a.minutes for a in self.appearances if not a.is_substitute)

    @property
    def derived_minutes(self) -> float:
        return sum(s.minutes_played for s in self.derived_stats)

    @property
    def aggregate_minutes(self) -> float:
        return sum(self.minutes_by_position.values())


def build_player_trail(
    snapshot: Snapshot,
    run: ValidationRun,
    player_id: str,
) -> PlayerTrail | None:
    """Collect one player's view from a snapshot and its validation run."""
    player = snapshot.players.get(player_id)
    if player is None:
        return None

    appearances: list[SelectionAppearance] = []
    for selection in snapshot.selections:
        label = selection.event.label if selection.event else ""
        for source_list, entries in (
            ("positions", selection.positions),
            ("substitutes", selection.substitutes),
        ):
            for entry in entries:
                if entry.player_id != player_id:
                    continue
                appearances.append(
                    SelectionAppearance(
                        selection_id=selection.selection_id,
                        event_id=selection.event_id,
                        event_label=label,
                        period_number=selection.period_number,
                        team_number=selection.team_number,
                        position=entry.position,
                        minutes=selection.minutes_for(entry),
                        is_substitute=entry.is_substitute,
                        source_list=source_list,
                    )
                )

    aggregate = snapshot.aggregates.get(player_id)
    return PlayerTrail(
        player=player,
        appearances=tuple(appearances),
        derived_stats=tuple(s for s in snapshot.event_stats if s.player_id == player_id),
        minutes_by_position=dict(aggregate.minutes_by_position) if aggregate else {},
        issues=tuple(i for i in run.issues if i.player_id == player_id),
    )


class IntegrityService:
    """Runs checks and repairs against one data-access bundle.

    Attributes:
        access: Stores and recomputer
        settings: Engine settings
        loader: Snapshot loader
        validator: Cross-layer validator
        orchestrator: Repair orchestrator
    """

    def __init__(
        self,
        access: DataAccess,
        *,
        settings: IntegritySettings | None = None,
        retry: RetryHandler | None = None,
    ) -> None:
        self.access = access
        self.settings = settings or get_settings()
        retry = retry or RetryHandler(RetryConfig(base_delay=self.settings.retry_base_delay))
        self.loader = SnapshotLoader(access, retry)
        self.validator = CrossLayerValidator(workers=self.settings.validation_workers)
        self.orchestrator = RepairOrchestrator(
            access,
            retry=retry,
            aggregate_batch_size=self.settings.aggregate_batch_size,
        )
        self._last_check: CheckRun | None = None
        self._last_outcome: RepairOutcome | None = None

    @property
    def last_check(self) -> CheckRun | None:
        """Most recent completed check, used as the repair precondition."""
        return self._last_check

    @property
    def last_outcome(self) -> RepairOutcome | None:
        """Most recent repair outcome, kept even if its re-validation failed."""
        return self._last_outcome

    @staticmethod
    def _checkpoint(cancel: asyncio.Event | None, stage: str) -> None:
        if cancel is not None and cancel.is_set():
            logger.info(f"Cancellation requested before {stage}")
            raise RunCancelledError(stage)

    async def _validate(
        self, cancel: asyncio.Event | None = None
    ) -> tuple[Snapshot, ValidationRun]:
        self._checkpoint(cancel, "load")
        snapshot = await self.loader.load()

        self._checkpoint(cancel, "validate")
        run = self.validator.validate(snapshot)
        return snapshot, run

    async def run_check(self, cancel: asyncio.Event | None = None) -> CheckRun:
        """Load, validate and summarize.

        Args:
            cancel: Optional cancellation signal

        Returns:
            CheckRun holding the report and the issues behind it

        Raises:
            LoadError: If the snapshot cannot be loaded.
            RunCancelledError: If cancel is set at a step boundary.
        """
        _, run = await self._validate(cancel)

        self._checkpoint(cancel, "report")
        report = summarize_run(run)

        check = CheckRun(
            run_id=uuid.uuid4().hex,
            checked_at=datetime.now(UTC),
            report=report,
            issues=run.issues,
            results=run.results,
        )
        self._last_check = check
        logger.info(
            f"Check {check.run_id}: {report.total_issues} issues "
            f"({report.critical_count} critical) in {report.total_checks} checks"
        )
        return check

    async def run_repair(
        self,
        report: ReconciliationReport,
        cancel: asyncio.Event | None = None,
    ) -> RepairRun:
        """Repair what the last check found, then re-validate once.

        Args:
            report: Report returned by the most recent run_check
            cancel: Optional cancellation signal

        Returns:
            RepairRun with the outcome, the post-repair check and the delta

        Raises:
            RepairPreconditionError: If report is not from the most recent check.
            LoadError: If the re-validation cannot load a snapshot; the
                applied repair stays available as last_outcome.
            RunCancelledError: If cancel is set at a step boundary.
        """
        before = self._last_check
        if before is None:
            raise RepairPreconditionError("Run a check before requesting a repair")
        if before.report is not report and before.report != report:
            raise RepairPreconditionError("Report does not match the most recent check")

        self._checkpoint(cancel, "repair")
        outcome = await self.orchestrator.repair(before.report, before.issues)
        self._last_outcome = outcome

        try:
            self._checkpoint(cancel, "revalidate")
            await asyncio.sleep(self.settings.revalidation_delay_seconds)
            after = await self.run_check(cancel)
        except (LoadError, RunCancelledError) as e:
            trail = "; ".join(outcome.log)
            logger.error(f"Repair applied but re-validation did not complete ({e}): {trail}")
            raise

        delta = diff_reports(before.report, after.report)
        logger.info(
            f"Repair resolved {delta.resolved_count} issues "
            f"({delta.issues_before} -> {delta.issues_after})"
        )
        return RepairRun(before=before, outcome=outcome, after=after, delta=delta)

    async def inspect_player(self, player_id: str) -> PlayerTrail | None:
        """Three-way trail for one player from a fresh snapshot.

        Does not replace the last check.

        Returns:
            PlayerTrail, or None if the player does not exist
        """
        snapshot, run = await self._validate()
        return build_player_trail(snapshot, run, player_id)

    async def repair_event(self, event_id: str) -> RepairOutcome:
        """Clear and regenerate derived stats for one event."""
        return await self.orchestrator.repair_event(event_id)
