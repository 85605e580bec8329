"""Repair orchestration.

Executes the repair plan against a data-access bundle:

1. purge: remove orphaned player references from their selections
2. regenerate: rebuild derived event stats from selections
3. recompute: rebuild player aggregates from derived stats
4. verify: record the derived stat row count

Steps run in dependency order. A step that fails is recorded in the outcome
and the remaining steps still run; only programming errors escape.

Example usage:
    orchestrator = RepairOrchestrator(access)
    outcome = await orchestrator.repair(report, issues)

    for line in outcome.log:
        print(line)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Any

from squad_integrity.repair.steps import (
    CLEAR_EVENT,
    EVENT_REPAIR_PLAN,
    PURGE,
    RECOMPUTE,
    REGENERATE,
    REPAIR_PLAN,
    VERIFY,
    PartialRepairWarning,
    RepairStepError,
    StepRecord,
    StepSpec,
    execution_order,
)
from squad_integrity.services.retry_handler import RetryHandler
from squad_integrity.validation.constants import ORPHANED_SELECTION

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from squad_integrity.services.db.protocol import DataAccess
    from squad_integrity.validation.report import ReconciliationReport
    from squad_integrity.validation.results import ValidationIssue

logger = logging.getLogger(__name__)

DEFAULT_AGGREGATE_BATCH_SIZE = 25


@dataclass
class RepairOutcome:
    """Result of one repair run.

    Attributes:
        steps: Step records in execution order
        purged_references: Position and substitute entries removed
        selections_cleaned: Selections that had at least one entry removed
        derived_stat_count: Derived row count read by the verify step
        aggregates_recomputed: Players recomputed individually in fallback
        aggregates_failed: Players whose individual recomputation failed
        aggregates_skipped: Players left out of the fallback batch
    """

    steps: dict[str, StepRecord] = field(default_factory=dict)
    purged_references: int = 0
    selections_cleaned: int = 0
    derived_stat_count: int | None = None
    aggregates_recomputed: list[str] = field(default_factory=list)
    aggregates_failed: list[str] = field(default_factory=list)
    aggregates_skipped: list[str] = field(default_factory=list)

    def step(self, name: str) -> StepRecord:
        return self.steps[name]

    @property
    def log(self) -> list[str]:
        return [line for record in self.steps.values() for line in record.log]

    @property
    def errors(self) -> list[RepairStepError]:
        return [r.error for r in self.steps.values() if r.error is not None]

    @property
    def warnings(self) -> list[PartialRepairWarning]:
        return [w for r in self.steps.values() for w in r.warnings]

    @property
    def success(self) -> bool:
        return all(r.succeeded for r in self.steps.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "steps": [
                {
                    "name": r.name,
                    "status": r.status.value,
                    "history": [s.value for s in r.history],
                    "error": r.error.message if r.error else None,
                    "warnings": [w.message for w in r.warnings],
                }
                for r in self.steps.values()
            ],
            "purged_references": self.purged_references,
            "selections_cleaned": self.selections_cleaned,
            "derived_stat_count": self.derived_stat_count,
            "aggregates_recomputed": list(self.aggregates_recomputed),
            "aggregates_failed": list(self.aggregates_failed),
            "aggregates_skipped": list(self.aggregates_skipped),
            "log": self.log,
            "errors": [str(e) for e in self.errors],
            "warnings": [str(w) for w in self.warnings],
        }


def orphans_by_selection(issues: Iterable[ValidationIssue]) -> dict[str, set[str]]:
    """Group orphaned player ids by the selection that references them."""
    grouped: dict[str, set[str]] = {}
    for issue in issues:
        if issue.kind != ORPHANED_SELECTION or not issue.selection_id or not issue.player_id:
            continue
        grouped.setdefault(issue.selection_id, set()).add(issue.player_id)
    return grouped


class RepairOrchestrator:
    """Runs repair plans with per-step retry and fallback.

    Attributes:
        access: Stores and recomputer to act on
        retry: Retry policy for every store call
        aggregate_batch_size: Cap on individual recomputations in the
            recompute fallback
    """

    def __init__(
        self,
        access: DataAccess,
        *,
        retry: RetryHandler | None = None,
        aggregate_batch_size: int = DEFAULT_AGGREGATE_BATCH_SIZE,
    ) -> None:
        self.access = access
        self.retry = retry or RetryHandler()
        self.aggregate_batch_size = aggregate_batch_size

    async def _run_plan(
        self,
        plan: Iterable[StepSpec],
        handlers: dict[str, Callable[[StepRecord, RepairOutcome], Awaitable[None]]],
    ) -> RepairOutcome:
        outcome = RepairOutcome()
        for name in execution_order(plan):
            record = StepRecord(name)
            outcome.steps[name] = record
            await handlers[name](record, outcome)
            if not record.status.is_terminal:
                record.complete()
        return outcome

    async def repair(
        self,
        report: ReconciliationReport,
        issues: Iterable[ValidationIssue],
    ) -> RepairOutcome:
        """Repair everything the report and its issues describe.

        Args:
            report: Report from the check the issues came from
            issues: Issues from the same check

        Returns:
            RepairOutcome with per-step status and log trail
        """
        orphans = orphans_by_selection(issues)
        orphaned_ids = set(report.orphaned_player_ids)
        targets = [p for p in report.affected_player_ids if p not in orphaned_ids]

        logger.info(
            f"Starting repair: {report.orphan_count} orphaned references in "
            f"{len(orphans)} selections, {len(targets)} affected players"
        )

        outcome = await self._run_plan(
            REPAIR_PLAN,
            {
                PURGE: partial(self._purge, orphans),
                REGENERATE: self._regenerate,
                RECOMPUTE: partial(self._recompute, targets),
                VERIFY: self._verify,
            },
        )

        logger.info(
            f"Repair finished: success={outcome.success}, "
            f"{len(outcome.errors)} errors, {len(outcome.warnings)} warnings"
        )
        return outcome

    async def repair_event(self, event_id: str) -> RepairOutcome:
        """Clear one event's derived stats and regenerate.

        Args:
            event_id: Event whose derived rows are rebuilt

        Returns:
            RepairOutcome with clear_event and regenerate steps
        """
        logger.info(f"Starting single-event repair for {event_id}")
        return await self._run_plan(
            EVENT_REPAIR_PLAN,
            {
                CLEAR_EVENT: partial(self._clear_event, event_id),
                REGENERATE: self._regenerate_once,
            },
        )

    # =========================================================================
    # Step handlers
    # =========================================================================

    async def _attempt(
        self,
        record: StepRecord,
        operation: Callable[[], Awaitable[Any]],
        operation_name: str,
    ) -> tuple[bool, Any, Exception | None]:
        """One retried store call, reflecting any retry on the record."""
        result = await self.retry.execute_with_result(operation, operation_name=operation_name)
        if result.was_retried:
            record.retrying(f"{operation_name} needed a retry")
        return result.is_successful, result.value, result.final_error

    async def _purge(
        self,
        orphans: dict[str, set[str]],
        record: StepRecord,
        outcome: RepairOutcome,
    ) -> None:
        if not orphans:
            record.complete("No orphaned references to purge")
            return

        failures: list[str] = []
        for selection_id, player_ids in orphans.items():
            ok, removed, error = await self._attempt(
                record,
                partial(self.access.selections.remove_player_references, selection_id, player_ids),
                f"purge_{selection_id}",
            )
            if not ok:
                failures.append(selection_id)
                record.note(f"Could not clean selection {selection_id}: {error}", logging.ERROR)
                continue
            outcome.purged_references += removed
            if removed:
                outcome.selections_cleaned += 1
                record.note(f"Removed {removed} references from selection {selection_id}")
            else:
                record.note(f"Selection {selection_id} already clean")

        if failures:
            record.fail(
                f"{len(failures)} of {len(orphans)} selections could not be cleaned: "
                f"{', '.join(sorted(failures))}"
            )
        else:
            record.complete(
                f"Purged {outcome.purged_references} references "
                f"from {outcome.selections_cleaned} selections"
            )

    async def _regenerate(self, record: StepRecord, outcome: RepairOutcome) -> None:
        ok, _, error = await self._attempt(
            record, self.access.recomputer.regenerate_event_stats, "regenerate_event_stats"
        )
        if ok:
            record.complete("Derived event stats regenerated")
            return

        record.fallback(f"Regeneration failed ({error}); clearing derived stats")
        ok, cleared, error = await self._attempt(
            record, self.access.event_stats.delete_all, "clear_event_stats"
        )
        if not ok:
            record.fail(f"Could not clear derived stats: {error}")
            return
        record.note(f"Cleared {cleared} derived stat rows")

        await asyncio.sleep(self.retry.calculate_delay())
        try:
            await self.access.recomputer.regenerate_event_stats()
        except self.retry.config.retryable_errors as e:
            record.fail(f"Regeneration failed after clearing derived stats: {e}")
            return

        record.warn("Derived stats were rebuilt from an empty collection")
        record.complete("Derived event stats regenerated after clear")

    async def _regenerate_once(self, record: StepRecord, outcome: RepairOutcome) -> None:
        ok, _, error = await self._attempt(
            record, self.access.recomputer.regenerate_event_stats, "regenerate_event_stats"
        )
        if ok:
            record.complete("Derived event stats regenerated")
        else:
            record.fail(f"Regeneration failed: {error}")

    async def _recompute(
        self,
        targets: list[str],
        record: StepRecord,
        outcome: RepairOutcome,
    ) -> None:
        ok, _, error = await self._attempt(
            record, self.access.recomputer.recompute_all_aggregates, "recompute_all_aggregates"
        )
        if ok:
            record.complete("All player aggregates recomputed")
            return

        record.fallback(f"Bulk recomputation failed ({error}); recomputing per player")
        if not targets:
            record.fail("Bulk recomputation failed and no affected players to recompute")
            return

        batch = targets[: self.aggregate_batch_size]
        outcome.aggregates_skipped.extend(targets[len(batch) :])

        for player_id in batch:
            ok, _, error = await self._attempt(
                record,
                partial(self.access.recomputer.recompute_player_aggregate, player_id),
                f"recompute_{player_id}",
            )
            if ok:
                outcome.aggregates_recomputed.append(player_id)
                record.note(f"Recomputed aggregate for {player_id}")
            else:
                outcome.aggregates_failed.append(player_id)
                record.note(
                    f"Could not recompute aggregate for {player_id}: {error}", logging.ERROR
                )

        if not outcome.aggregates_recomputed:
            record.fail(f"Per-player recomputation failed for all {len(batch)} players")
            return

        record.warn(
            f"Recomputed {len(outcome.aggregates_recomputed)} of {len(targets)} affected players "
            f"({len(outcome.aggregates_failed)} failed, "
            f"{len(outcome.aggregates_skipped)} beyond batch limit)"
        )
        record.complete()

    async def _verify(self, record: StepRecord, outcome: RepairOutcome) -> None:
        ok, count, error = await self._attempt(
            record, self.access.event_stats.count, "count_event_stats"
        )
        if not ok:
            record.fail(f"Could not count derived stats: {error}")
            return
        outcome.derived_stat_count = count
        record.complete(f"{count} derived stat rows after repair")

    async def _clear_event(
        self,
        event_id: str,
        record: StepRecord,
        outcome: RepairOutcome,
    ) -> None:
        ok, deleted, error = await self._attempt(
            record,
            partial(self.access.event_stats.delete_for_event, event_id),
            f"clear_event_{event_id}",
        )
        if ok:
            record.complete(f"Deleted {deleted} derived stat rows for event {event_id}")
        else:
            record.fail(f"Could not clear derived stats for event {event_id}: {error}")
