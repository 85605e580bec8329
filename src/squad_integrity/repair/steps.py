"""Repair step state machine and step ordering.

Each repair step moves through a small set of states:

    PENDING -> RETRYING -> FALLBACK -> DONE | FAILED

RETRYING and FALLBACK are optional. DONE and FAILED are terminal. Steps
declare their dependencies explicitly and are executed in topological order,
so the order purge -> regenerate -> recompute -> verify cannot be changed by
reordering code.

Example usage:
    record = StepRecord("regenerate")
    record.transition(StepStatus.RETRYING)
    record.note("first attempt failed, retrying")
    record.complete()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from graphlib import TopologicalSorter
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

# Step names
PURGE = "purge"
REGENERATE = "regenerate"
RECOMPUTE = "recompute"
VERIFY = "verify"
CLEAR_EVENT = "clear_event"


class StepStatus(Enum):
    """State of a repair step."""

    PENDING = "pending"
    RETRYING = "retrying"
    FALLBACK = "fallback"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.DONE, StepStatus.FAILED)


ALLOWED_TRANSITIONS: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.PENDING: frozenset(
        {StepStatus.RETRYING, StepStatus.FALLBACK, StepStatus.DONE, StepStatus.FAILED}
    ),
    StepStatus.RETRYING: frozenset(
        {StepStatus.FALLBACK, StepStatus.DONE, StepStatus.FAILED}
    ),
    StepStatus.FALLBACK: frozenset({StepStatus.DONE, StepStatus.FAILED}),
    StepStatus.DONE: frozenset(),
    StepStatus.FAILED: frozenset(),
}


class StepTransitionError(RuntimeError):
    """Raised when a step is moved to a state it cannot reach."""

    pass


class RepairStepError(Exception):
    """A repair step failed after its retry budget.

    Recorded in RepairOutcome, never raised out of a repair run.
    """

    def __init__(self, step: str, message: str) -> None:
        super().__init__(message)
        self.step = step
        self.message = message

    def __str__(self) -> str:
        return f"{self.step}: {self.message}"


class PartialRepairWarning(UserWarning):
    """A fallback changed data but may not have completed the repair."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(message)
        self.step = step
        self.message = message

    def __str__(self) -> str:
        return f"{self.step}: {self.message}"


@dataclass
class StepRecord:
    """Mutable progress record for one step of one repair run.

    Attributes:
        name: Step name
        status: Current state
        history: Every state the step has been in, in order
        log: Human-readable trail, one line per action
        error: Failure, if the step ended FAILED
        warnings: Fallback notices
        started_at: When the record was created
        finished_at: When the step reached a terminal state
    """

    name: str
    status: StepStatus = StepStatus.PENDING
    history: list[StepStatus] = field(default_factory=lambda: [StepStatus.PENDING])
    log: list[str] = field(default_factory=list)
    error: RepairStepError | None = None
    warnings: list[PartialRepairWarning] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None

    def transition(self, target: StepStatus) -> None:
        """Move to target, enforcing the allowed transitions.

        Raises:
            StepTransitionError: If target is not reachable from the current state.
        """
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise StepTransitionError(
                f"Step {self.name} cannot move from {self.status.value} to {target.value}"
            )
        self.status = target
        self.history.append(target)
        if target.is_terminal:
            self.finished_at = datetime.now(UTC)

    def note(self, message: str, level: int = logging.INFO) -> None:
        """Append to the trail and the module log."""
        line = f"[{self.name}] {message}"
        self.log.append(line)
        logger.log(level, line)

    def retrying(self, message: str) -> None:
        """Enter RETRYING once; later calls only add to the trail."""
        if self.status == StepStatus.PENDING:
            self.transition(StepStatus.RETRYING)
        self.note(message, logging.WARNING)

    def fallback(self, message: str) -> None:
        self.transition(StepStatus.FALLBACK)
        self.note(message, logging.WARNING)

    def warn(self, message: str) -> None:
        self.warnings.append(PartialRepairWarning(self.name, message))
        self.note(f"warning: {message}", logging.WARNING)

    def complete(self, message: str | None = None) -> None:
        if message:
            self.note(message)
        self.transition(StepStatus.DONE)

    def fail(self, message: str) -> None:
        self.error = RepairStepError(self.name, message)
        self.note(f"failed: {message}", logging.ERROR)
        self.transition(StepStatus.FAILED)

    @property
    def succeeded(self) -> bool:
        return self.status == StepStatus.DONE

    @property
    def used_fallback(self) -> bool:
        return StepStatus.FALLBACK in self.history


@dataclass(frozen=True, slots=True)
class StepSpec:
    """A step and the steps that must finish before it starts."""

    name: str
    depends_on: tuple[str, ...] = ()


REPAIR_PLAN: tuple[StepSpec, ...] = (
    StepSpec(PURGE),
    StepSpec(REGENERATE, depends_on=(PURGE,)),
    StepSpec(RECOMPUTE, depends_on=(REGENERATE,)),
    StepSpec(VERIFY, depends_on=(RECOMPUTE,)),
)

EVENT_REPAIR_PLAN: tuple[StepSpec, ...] = (
    StepSpec(CLEAR_EVENT),
    StepSpec(REGENERATE, depends_on=(CLEAR_EVENT,)),
)


def execution_order(plan: Iterable[StepSpec]) -> list[str]:
    """Step names in dependency order.

    Raises:
        graphlib.CycleError: If the plan's dependencies form a cycle.
        ValueError: If a step depends on a step missing from the plan.
    """
    specs = list(plan)
    names = {spec.name for spec in specs}
    graph: dict[str, tuple[str, ...]] = {}
    for spec in specs:
        unknown = set(spec.depends_on) - names
        if unknown:
            raise ValueError(f"Step {spec.name} depends on unknown steps: {sorted(unknown)}")
        graph[spec.name] = spec.depends_on
    return list(TopologicalSorter(graph).static_order())
