"""Domain records for the four entity collections.

Position lists are stored as schemaless JSON arrays. They are parsed once,
here, into PositionEntry values; elements that cannot be parsed are kept
aside as MalformedEntry so later comparisons only ever see typed data.

Example usage:
    selection, malformed = SelectionRecord.from_record(row)
    for entry in selection.positions:
        print(entry.player_id, entry.position, entry.minutes)
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal

logger = logging.getLogger(__name__)

EntryList = Literal["positions", "substitutes"]

# Substitute rows may carry this placeholder instead of a playing position
SUBSTITUTE_POSITION = "SUB"

_RAW_PREVIEW_LENGTH = 80


@dataclass(frozen=True, slots=True)
class Player:
    """A roster player; the existence anchor for every other record."""

    player_id: str
    name: str = ""

    @classmethod
    def from_record(cls, record: Any) -> Player:
        return cls(player_id=str(record["id"]), name=record["name"] or "")


@dataclass(frozen=True, slots=True)
class PositionEntry:
    """One player assignment inside a selection record.

    Attributes:
        player_id: Referenced player
        position: Position code (e.g. "CB", "GK"), None for bare substitutes
        minutes: Explicit minutes for this entry, None to use the period length
        is_substitute: Whether the player started on the bench
    """

    player_id: str
    position: str | None
    minutes: float | None = None
    is_substitute: bool = False


@dataclass(frozen=True, slots=True)
class MalformedEntry:
    """A position list element that could not be parsed."""

    selection_id: str
    event_id: str
    source_list: EntryList
    index: int
    reason: str
    raw: str


@dataclass(frozen=True, slots=True)
class EventInfo:
    """Minimal event metadata used for readable reports."""

    title: str | None = None
    opponent: str | None = None
    event_date: date | None = None

    @property
    def label(self) -> str:
        parts = [p for p in (self.title, self.opponent) if p]
        text = " vs ".join(parts) if parts else "untitled event"
        if self.event_date is not None:
            text = f"{text} ({self.event_date.isoformat()})"
        return text


@dataclass(frozen=True, slots=True)
class SelectionRecord:
    """Squad selection for one (event, team, period).

    Attributes:
        selection_id: Primary key
        event_id: Event the selection belongs to
        team_id: Team within the event
        team_number: Team ordinal within the event (1 when single team)
        period_number: Period ordinal
        duration_minutes: Period length, the fallback for entries without minutes
        positions: Ordered playing assignments
        substitutes: Bench entries
        event: Joined event metadata
    """

    selection_id: str
    event_id: str
    team_id: str | None = None
    team_number: int | None = 1
    period_number: int = 1
    duration_minutes: float = 0
    positions: tuple[PositionEntry, ...] = field(default_factory=tuple)
    substitutes: tuple[PositionEntry, ...] = field(default_factory=tuple)
    event: EventInfo | None = None

    @classmethod
    def from_record(cls, record: Any) -> tuple[SelectionRecord, list[MalformedEntry]]:
        """Build a selection from a joined event_selections row.

        Args:
            record: Row with selection columns plus event_title,
                event_opponent and event_date

        Returns:
            The parsed selection and any quarantined list elements
        """
        selection_id = str(record["id"])
        event_id = str(record["event_id"])

        positions, bad_positions = parse_position_list(
            record["player_positions"],
            selection_id=selection_id,
            event_id=event_id,
            source_list="positions",
        )
        substitutes, bad_substitutes = parse_position_list(
            record["substitute_players"],
            selection_id=selection_id,
            event_id=event_id,
            source_list="substitutes",
        )

        team_id = record["team_id"]
        selection = cls(
            selection_id=selection_id,
            event_id=event_id,
            team_id=str(team_id) if team_id is not None else None,
            team_number=record["team_number"],
            period_number=record["period_number"] or 1,
            duration_minutes=_column_minutes(record["duration_minutes"]),
            positions=tuple(positions),
            substitutes=tuple(substitutes),
            event=EventInfo(
                title=record["event_title"],
                opponent=record["event_opponent"],
                event_date=record["event_date"],
            ),
        )
        return selection, bad_positions + bad_substitutes

    def referenced_player_ids(self) -> set[str]:
        """All player ids named in either list."""
        return {e.player_id for e in self.positions} | {
            e.player_id for e in self.substitutes
        }

    def minutes_for(self, entry: PositionEntry) -> float:
        """Minutes for an entry, falling back to the period length."""
        if entry.minutes is not None:
            return entry.minutes
        return self.duration_minutes


@dataclass(frozen=True, slots=True)
class DerivedEventStat:
    """Per-event, per-player statistic derived from selections."""

    stat_id: str
    event_id: str
    player_id: str
    position: str | None
    minutes_played: float = 0
    is_substitute: bool = False
    period_number: int | None = None
    team_number: int | None = None

    @classmethod
    def from_record(cls, record: Any) -> DerivedEventStat:
        return cls(
            stat_id=str(record["id"]),
            event_id=str(record["event_id"]),
            player_id=str(record["player_id"]),
            position=record["position"],
            minutes_played=_column_minutes(record["minutes_played"]),
            is_substitute=bool(record["is_substitute"]),
            period_number=record["period_number"],
            team_number=record["team_number"],
        )

    @property
    def has_playing_position(self) -> bool:
        return bool(self.position) and self.position != SUBSTITUTE_POSITION


@dataclass(frozen=True, slots=True)
class AggregateRecord:
    """Per-player rollup of derived stats."""

    player_id: str
    minutes_by_position: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Any) -> AggregateRecord:
        """Build from a players row carrying the match_stats JSON column."""
        try:
            stats = decode_json(record["match_stats"]) or {}
        except ValueError:
            logger.warning(f"Player {record['id']} has unreadable match_stats")
            stats = {}
        raw = stats.get("minutesByPosition") if isinstance(stats, dict) else None
        minutes: dict[str, float] = {}
        if isinstance(raw, dict):
            for position, value in raw.items():
                if (
                    isinstance(value, (int, float))
                    and not isinstance(value, bool)
                    and math.isfinite(value)
                ):
                    minutes[str(position)] = value
        return cls(player_id=str(record["id"]), minutes_by_position=minutes)

    def minutes_at(self, position: str) -> float:
        return self.minutes_by_position.get(position, 0)


# =============================================================================
# JSON boundary parsing
# =============================================================================


def decode_json(value: Any) -> Any:
    """Decode a json/jsonb column value; asyncpg hands these over as text."""
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return json.loads(value)
    return value


def _preview(raw: Any) -> str:
    text = repr(raw)
    if len(text) > _RAW_PREVIEW_LENGTH:
        return text[: _RAW_PREVIEW_LENGTH - 3] + "..."
    return text


def _column_minutes(value: Any) -> float:
    """Minutes from a numeric column; asyncpg returns Decimal for numeric."""
    if value is None:
        return 0
    minutes = float(value)
    return int(minutes) if minutes.is_integer() else minutes


def _parse_minutes(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("minutes is a boolean")
    if isinstance(value, str):
        value = float(value)
    if not isinstance(value, (int, float)):
        raise ValueError(f"minutes has type {type(value).__name__}")
    if not math.isfinite(value):
        raise ValueError("minutes is not finite")
    if value < 0:
        raise ValueError("minutes is negative")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _parse_entry(raw: Any, source_list: EntryList) -> PositionEntry:
    is_bench = source_list == "substitutes"

    if isinstance(raw, str) and is_bench:
        if not raw:
            raise ValueError("empty player id")
        return PositionEntry(player_id=raw, position=None, is_substitute=True)

    if not isinstance(raw, dict):
        raise ValueError(f"entry is a {type(raw).__name__}, not an object")

    player_id = raw.get("playerId", raw.get("player_id"))
    if isinstance(player_id, bool) or not isinstance(player_id, (str, int)):
        raise ValueError("missing player id")
    if player_id == "":
        raise ValueError("missing player id")

    position = raw.get("position")
    if position is not None and not isinstance(position, str):
        raise ValueError(f"position has type {type(position).__name__}")

    minutes = _parse_minutes(raw.get("minutes", raw.get("minutesPlayed")))
    is_substitute = raw.get("isSubstitute", raw.get("is_substitute"))
    if is_substitute is None:
        is_substitute = is_bench
    elif not isinstance(is_substitute, bool):
        raise ValueError("isSubstitute is not a boolean")

    return PositionEntry(
        player_id=str(player_id),
        position=position,
        minutes=minutes,
        is_substitute=is_substitute,
    )


def parse_position_list(
    raw: Any,
    *,
    selection_id: str,
    event_id: str,
    source_list: EntryList,
) -> tuple[list[PositionEntry], list[MalformedEntry]]:
    """Parse a stored position or substitute list.

    Args:
        raw: Column value (JSON text, decoded list or None)
        selection_id: Owning selection, for quarantine records
        event_id: Owning event, for quarantine records
        source_list: Which list is being parsed

    Returns:
        Tuple of (parsed entries in stored order, malformed elements)
    """
    try:
        items = decode_json(raw)
    except (ValueError, UnicodeDecodeError) as e:
        logger.warning(f"Selection {selection_id} has unreadable {source_list}: {e}")
        return [], [
            MalformedEntry(
                selection_id=selection_id,
                event_id=event_id,
                source_list=source_list,
                index=-1,
                reason=f"invalid JSON: {e}",
                raw=_preview(raw),
            )
        ]

    if items is None:
        return [], []

    if not isinstance(items, list):
        return [], [
            MalformedEntry(
                selection_id=selection_id,
                event_id=event_id,
                source_list=source_list,
                index=-1,
                reason=f"list is a {type(items).__name__}",
                raw=_preview(items),
            )
        ]

    entries: list[PositionEntry] = []
    malformed: list[MalformedEntry] = []
    for index, item in enumerate(items):
        try:
            entries.append(_parse_entry(item, source_list))
        except ValueError as e:
            malformed.append(
                MalformedEntry(
                    selection_id=selection_id,
                    event_id=event_id,
                    source_list=source_list,
                    index=index,
                    reason=str(e),
                    raw=_preview(item),
                )
            )
    return entries, malformed


def entry_player_id(raw: Any) -> str | None:
    """Player id named by a raw stored list element, if any."""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, dict):
        player_id = raw.get("playerId", raw.get("player_id"))
        if isinstance(player_id, (str, int)) and not isinstance(player_id, bool):
            return str(player_id)
    return None


def strip_player_references(raw: Any, player_ids: set[str]) -> tuple[list[Any], int]:
    """Remove elements naming player_ids from a stored list.

    Works on the raw stored elements so unrelated keys and quarantined
    elements are written back untouched.

    Returns:
        Tuple of (remaining elements, number removed)
    """
    try:
        items = decode_json(raw)
    except (ValueError, UnicodeDecodeError):
        return [], 0
    if not isinstance(items, list):
        return [], 0
    kept = [item for item in items if entry_player_id(item) not in player_ids]
    return kept, len(items) - len(kept)
