"""Typed records for players, selections, derived stats and aggregates."""

from squad_integrity.models.entities import (
    SUBSTITUTE_POSITION,
    AggregateRecord,
    DerivedEventStat,
    EventInfo,
    MalformedEntry,
    Player,
    PositionEntry,
    SelectionRecord,
    decode_json,
    entry_player_id,
    parse_position_list,
    strip_player_references,
)

__all__ = [
    "SUBSTITUTE_POSITION",
    "AggregateRecord",
    "DerivedEventStat",
    "EventInfo",
    "MalformedEntry",
    "Player",
    "PositionEntry",
    "SelectionRecord",
    "decode_json",
    "entry_player_id",
    "parse_position_list",
    "strip_player_references",
]
