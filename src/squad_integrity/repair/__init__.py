"""Repair of cross-layer inconsistencies.

Example usage:
    from squad_integrity.repair import RepairOrchestrator

    outcome = await RepairOrchestrator(access).repair(report, issues)
    if not outcome.success:
        for error in outcome.errors:
            print(error)
"""

from squad_integrity.repair.orchestrator import (
    RepairOrchestrator,
    RepairOutcome,
    orphans_by_selection,
)
from squad_integrity.repair.steps import (
    EVENT_REPAIR_PLAN,
    REPAIR_PLAN,
    PartialRepairWarning,
    RepairStepError,
    StepRecord,
    StepSpec,
    StepStatus,
    StepTransitionError,
    execution_order,
)

__all__ = [
    "EVENT_REPAIR_PLAN",
    "REPAIR_PLAN",
    "PartialRepairWarning",
    "RepairOrchestrator",
    "RepairOutcome",
    "RepairStepError",
    "StepRecord",
    "StepSpec",
    "StepStatus",
    "StepTransitionError",
    "execution_order",
    "orphans_by_selection",
]
