"""Integrity CLI commands.

Runs checks and repairs against the configured database and prints text or
JSON output.

Usage:
    python -m squad_integrity.cli check
    python -m squad_integrity.cli check --report --output-dir data/reports
    python -m squad_integrity.cli repair --json
    python -m squad_integrity.cli inspect-player 4a1f...
    python -m squad_integrity.cli repair-event 9c2e...
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from squad_integrity.config import get_settings
from squad_integrity.services.db import DatabaseError, DatabaseService, build_data_access
from squad_integrity.services.integrity_service import IntegrityService
from squad_integrity.validation import LoadError
from squad_integrity.validation.constants import ISSUE_KINDS, SEVERITIES

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from squad_integrity.repair import RepairOutcome
    from squad_integrity.services.integrity_service import CheckRun, PlayerTrail, RepairRun

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ISSUES = 1
EXIT_UNAVAILABLE = 2

# Issues listed per severity in text reports
MAX_LISTED_ISSUES = 20


@asynccontextmanager
async def _open_service() -> AsyncIterator[IntegrityService]:
    """Connect to the database and build an engine for one command."""
    settings = get_settings()
    db = DatabaseService(
        min_connections=1,
        max_connections=settings.db_max_connections,
        secret_id=settings.db_secret_id,
    )
    await db.connect()
    try:
        yield IntegrityService(
            build_data_access(db, page_size=settings.page_size), settings=settings
        )
    finally:
        await db.disconnect()


# =============================================================================
# Text rendering
# =============================================================================


def generate_report(check: CheckRun) -> str:
    """Generate a text reconciliation report.

    Args:
        check: Completed check

    Returns:
        Report text
    """
    report = check.report
    lines = []
    lines.append("=" * 80)
    lines.append("SQUAD STATISTICS INTEGRITY REPORT")
    lines.append("=" * 80)
    lines.append(f"Run: {check.run_id}")
    lines.append(f"Generated: {check.checked_at.strftime('%Y-%m-%d %H:%M:%S')} UTC")
    lines.append("")

    lines.append("SUMMARY")
    lines.append("-" * 40)
    lines.append(f"Total Checks: {report.total_checks}")
    lines.append(f"Total Issues: {report.total_issues}")
    for severity in SEVERITIES:
        lines.append(f"  {severity.capitalize()}: {report.issues_by_severity.get(severity, 0)}")
    lines.append(f"Orphaned References: {report.orphan_count}")
    lines.append(f"Entries with Mismatches: {report.mismatch_count}")
    lines.append(f"Affected Players: {len(report.affected_player_ids)}")
    lines.append("")

    if not report.is_clean:
        lines.append("ISSUES BY KIND")
        lines.append("-" * 40)
        for kind in ISSUE_KINDS:
            count = report.issues_by_kind.get(kind, 0)
            if count:
                lines.append(f"{kind}: {count}")
        lines.append("")

    for severity in SEVERITIES:
        issues = [i for i in check.issues if i.severity == severity]
        if not issues:
            continue
        lines.append(f"{severity.upper()} ISSUES")
        lines.append("-" * 40)
        for issue in issues[:MAX_LISTED_ISSUES]:
            lines.append(f"[{issue.kind}] {issue.description}")
        if len(issues) > MAX_LISTED_ISSUES:
            lines.append(f"... and {len(issues) - MAX_LISTED_ISSUES} more")
        lines.append("")

    if report.is_clean:
        lines.append("All layers are consistent.")

    return "\n".join(lines)


def format_outcome(outcome: RepairOutcome) -> str:
    lines = ["REPAIR STEPS", "-" * 40]
    for record in outcome.steps.values():
        path = " -> ".join(s.value for s in record.history)
        lines.append(f"{record.name}: {record.status.value.upper()} ({path})")
    lines.append("")
    lines.append("LOG")
    lines.append("-" * 40)
    lines.extend(outcome.log)
    if outcome.errors:
        lines.append("")
        lines.append("ERRORS")
        lines.append("-" * 40)
        lines.extend(str(e) for e in outcome.errors)
    if outcome.warnings:
        lines.append("")
        lines.append("WARNINGS")
        lines.append("-" * 40)
        lines.extend(str(w) for w in outcome.warnings)
    return "\n".join(lines)


def format_repair(repair: RepairRun) -> str:
    delta = repair.delta
    lines = [format_outcome(repair.outcome), "", "RESULT", "-" * 40]
    lines.append(f"Issues: {delta.issues_before} -> {delta.issues_after}")
    for kind, change in delta.kind_deltas.items():
        if change:
            lines.append(f"  {kind}: {change:+d}")
    if delta.resolved_orphan_ids:
        lines.append(f"Resolved orphaned players: {', '.join(delta.resolved_orphan_ids)}")
    lines.append(f"Improved: {'yes' if delta.improved else 'no'}")
    return "\n".join(lines)


def format_trail(trail: PlayerTrail) -> str:
    player = trail.player
    lines = [f"Player {player.name or player.player_id} ({player.player_id})", ""]

    lines.append("SELECTIONS")
    lines.append("-" * 40)
    for a in trail.appearances:
        bench = " (sub)" if a.is_substitute else ""
        lines.append(
            f"{a.event_label or a.event_id} P{a.period_number}: "
            f"{a.position or '-'} {a.minutes} min{bench}"
        )
    lines.append(f"Selected minutes: {trail.selected_minutes}")
    lines.append("")

    lines.append("DERIVED STATS")
    lines.append("-" * 40)
    for s in trail.derived_stats:
        lines.append(f"{s.event_id} P{s.period_number}: {s.position or '-'} {s.minutes_played} min")
    lines.append(f"Derived minutes: {trail.derived_minutes}")
    lines.append("")

    lines.append("AGGREGATE")
    lines.append("-" * 40)
    for position, minutes in sorted(trail.minutes_by_position.items()):
        lines.append(f"{position}: {minutes}")
    lines.append(f"Aggregate minutes: {trail.aggregate_minutes}")

    if trail.issues:
        lines.append("")
        lines.append("ISSUES")
        lines.append("-" * 40)
        for issue in trail.issues:
            lines.append(f"[{issue.severity}] {issue.kind}: {issue.description}")
    return "\n".join(lines)


def _print_json(data: dict[str, Any]) -> None:
    print(json.dumps(data, indent=2, default=str))


def _save_report(check: CheckRun, output_dir: str) -> Path:
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    report_file = output_path / f"integrity_{timestamp}_report.txt"
    report_file.write_text(generate_report(check))

    json_file = output_path / f"integrity_{timestamp}.json"
    json_file.write_text(json.dumps(check.to_dict(), indent=2, default=str))
    return report_file


# =============================================================================
# Commands
# =============================================================================


async def _run_check_async(as_json: bool, save_report: bool, output_dir: str) -> int:
    async with _open_service() as service:
        check = await service.run_check()

    if as_json:
        _print_json(check.to_dict())
    else:
        print(generate_report(check))

    if save_report:
        report_file = _save_report(check, output_dir)
        print(f"\nReport saved to: {report_file}")

    return EXIT_OK if check.report.is_clean else EXIT_ISSUES


async def _run_repair_async(as_json: bool) -> int:
    async with _open_service() as service:
        check = await service.run_check()
        if not as_json:
            print(generate_report(check))
            print("")
        repair = await service.run_repair(check.report)

    if as_json:
        _print_json(repair.to_dict())
    else:
        print(format_repair(repair))

    return EXIT_OK if repair.outcome.success else EXIT_ISSUES


async def _run_inspect_async(player_id: str, as_json: bool) -> int:
    async with _open_service() as service:
        trail = await service.inspect_player(player_id)

    if trail is None:
        print(f"Player {player_id} not found")
        return EXIT_ISSUES

    if as_json:
        _print_json(
            {
                "player_id": trail.player.player_id,
                "name": trail.player.name,
                "appearances": [asdict(a) for a in trail.appearances],
                "derived_stats": [asdict(s) for s in trail.derived_stats],
                "minutes_by_position": trail.minutes_by_position,
                "issues": [i.to_dict() for i in trail.issues],
            }
        )
    else:
        print(format_trail(trail))
    return EXIT_OK


async def _run_repair_event_async(event_id: str, as_json: bool) -> int:
    async with _open_service() as service:
        outcome = await service.repair_event(event_id)

    if as_json:
        _print_json(outcome.to_dict())
    else:
        print(format_outcome(outcome))
    return EXIT_OK if outcome.success else EXIT_ISSUES


def _run(coro: Any) -> int:
    try:
        result: int = asyncio.run(coro)
    except LoadError as e:
        logger.error(f"Check aborted: {e}")
        print(f"Check aborted: {e}")
        return EXIT_UNAVAILABLE
    except DatabaseError as e:
        logger.error(f"Database unavailable: {e}")
        print(f"Database unavailable: {e}")
        return EXIT_UNAVAILABLE
    return result


def run_check(
    *,
    as_json: bool = False,
    save_report: bool = False,
    output_dir: str = "data/reports/integrity",
) -> int:
    """Run a check. Exit code 0 when clean, 1 with issues, 2 if unavailable."""
    return _run(_run_check_async(as_json, save_report, output_dir))


def run_repair(*, as_json: bool = False) -> int:
    """Check, repair and re-check. Exit code 0 when every step succeeded."""
    return _run(_run_repair_async(as_json))


def run_inspect_player(player_id: str, *, as_json: bool = False) -> int:
    return _run(_run_inspect_async(player_id, as_json))


def run_repair_event(event_id: str, *, as_json: bool = False) -> int:
    return _run(_run_repair_event_async(event_id, as_json))
