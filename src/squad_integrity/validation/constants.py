"""Validation constants and tolerances.

The minutes tolerance is fixed policy, not a runtime setting.
"""

# Minutes difference allowed between a selection entry and its derived stat.
# A difference of exactly this many minutes passes.
MINUTES_TOLERANCE = 5

# Issue kinds
ORPHANED_SELECTION = "orphaned_selection"
MISSING_PLAYER = "missing_player"
MISSING_EVENT_STAT = "missing_event_stat"
POSITION_MISMATCH = "position_mismatch"
MINUTES_MISMATCH = "minutes_mismatch"
AGGREGATION_ERROR = "aggregation_error"
INVALID_STATS = "invalid_stats"
MALFORMED_ENTRY = "malformed_entry"

ISSUE_KINDS = (
    ORPHANED_SELECTION,
    MISSING_PLAYER,
    MISSING_EVENT_STAT,
    POSITION_MISMATCH,
    MINUTES_MISMATCH,
    AGGREGATION_ERROR,
    INVALID_STATS,
    MALFORMED_ENTRY,
)

# Severities, most severe first
CRITICAL = "critical"
WARNING = "warning"
INFO = "info"

SEVERITIES = (CRITICAL, WARNING, INFO)

KIND_SEVERITY = {
    ORPHANED_SELECTION: CRITICAL,
    MISSING_EVENT_STAT: CRITICAL,
    POSITION_MISMATCH: CRITICAL,
    MINUTES_MISMATCH: WARNING,
    AGGREGATION_ERROR: WARNING,
    MISSING_PLAYER: WARNING,
    INVALID_STATS: INFO,
    MALFORMED_ENTRY: INFO,
}
