"""CLI entry point for squad_integrity.

Usage:
    python -m squad_integrity.cli check --json
    python -m squad_integrity.cli repair
    python -m squad_integrity.cli inspect-player PLAYER_ID
    python -m squad_integrity.cli repair-event EVENT_ID
"""

from __future__ import annotations

import argparse
import logging
import sys


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="squad-integrity",
        description="Cross-layer consistency checks and repair for squad statistics",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log engine progress to stderr",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Check command
    check_parser = subparsers.add_parser(
        "check",
        help="Validate all layers and print the report",
    )
    check_parser.add_argument("--json", action="store_true", help="Print JSON")
    check_parser.add_argument(
        "--report",
        action="store_true",
        help="Also save text and JSON reports",
    )
    check_parser.add_argument(
        "--output-dir",
        type=str,
        default="data/reports/integrity",
        help="Output directory for reports (default: data/reports/integrity)",
    )

    # Repair command
    repair_parser = subparsers.add_parser(
        "repair",
        help="Check, repair and re-check",
    )
    repair_parser.add_argument("--json", action="store_true", help="Print JSON")

    # Inspect command
    inspect_parser = subparsers.add_parser(
        "inspect-player",
        help="Show one player across selections, derived stats and aggregate",
    )
    inspect_parser.add_argument("player_id", help="Player id")
    inspect_parser.add_argument("--json", action="store_true", help="Print JSON")

    # Event repair command
    event_parser = subparsers.add_parser(
        "repair-event",
        help="Clear and regenerate derived stats for one event",
    )
    event_parser.add_argument("event_id", help="Event id")
    event_parser.add_argument("--json", action="store_true", help="Print JSON")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "check":
        from squad_integrity.cli.commands import run_check

        return run_check(
            as_json=args.json,
            save_report=args.report,
            output_dir=args.output_dir,
        )
    elif args.command == "repair":
        from squad_integrity.cli.commands import run_repair

        return run_repair(as_json=args.json)
    elif args.command == "inspect-player":
        from squad_integrity.cli.commands import run_inspect_player

        return run_inspect_player(args.player_id, as_json=args.json)
    elif args.command == "repair-event":
        from squad_integrity.cli.commands import run_repair_event

        return run_repair_event(args.event_id, as_json=args.json)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
