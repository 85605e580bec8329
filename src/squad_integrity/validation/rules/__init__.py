"""Validation rules by concern.

- references: orphaned selection entries, malformed entries, players without stats
- layers: selection vs derived stat vs aggregate comparison
- derived_stats: sanity checks on derived rows
"""

from squad_integrity.validation.rules.derived_stats import check_derived_stats
from squad_integrity.validation.rules.layers import (
    compare_entry,
    compare_selection,
    exceeds_tolerance,
)
from squad_integrity.validation.rules.references import (
    check_malformed_entries,
    check_players_without_stats,
    scan_orphans,
    scan_selection_orphans,
)

__all__ = [
    "check_derived_stats",
    "check_malformed_entries",
    "check_players_without_stats",
    "compare_entry",
    "compare_selection",
    "exceeds_tolerance",
    "scan_orphans",
    "scan_selection_orphans",
]
