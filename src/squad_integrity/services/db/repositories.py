"""PostgreSQL repositories for the four entity collections.

Each repository implements one of the protocols in
squad_integrity.services.db.protocol on top of DatabaseService. Large
collections are read in keyset pages so no single query holds the whole
table.

Usage:
    async with DatabaseService() as db:
        access = build_data_access(db)
        players = await access.players.fetch_all()
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from squad_integrity.models import (
    AggregateRecord,
    DerivedEventStat,
    MalformedEntry,
    Player,
    SelectionRecord,
    strip_player_references,
)
from squad_integrity.services.db.protocol import DataAccess

if TYPE_CHECKING:
    from squad_integrity.services.db.connection import DatabaseService

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 500


def _affected_rows(status: str) -> int:
    """Row count from a command status such as "DELETE 12"."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


class _PagedRepository:
    """Shared keyset pagination over a uuid primary key."""

    def __init__(self, db: DatabaseService, *, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self.db = db
        self.page_size = page_size

    async def _fetch_paged(self, query: str, key: str = "id") -> list[Any]:
        """Run a query taking ($1 = last key or NULL, $2 = limit) until exhausted."""
        rows: list[Any] = []
        last_key: str | None = None
        while True:
            page = await self.db.fetch(query, last_key, self.page_size)
            rows.extend(page)
            if len(page) < self.page_size:
                return rows
            last_key = str(page[-1][key])


class PlayerRepository(_PagedRepository):
    """players table."""

    async def ping(self) -> bool:
        result = await self.db.fetchval("SELECT EXISTS (SELECT 1 FROM players)")
        return result is not None

    async def fetch_all(self) -> list[Player]:
        rows = await self._fetch_paged(
            """
            SELECT id, name FROM players
            WHERE ($1::uuid IS NULL OR id > $1::uuid)
            ORDER BY id
            LIMIT $2
            """
        )
        return [Player.from_record(row) for row in rows]


class SelectionRepository(_PagedRepository):
    """event_selections joined with events."""

    _SELECT = """
        SELECT s.id, s.event_id, s.team_id, s.team_number, s.period_number,
               s.duration_minutes, s.player_positions, s.substitute_players,
               e.title AS event_title, e.opponent AS event_opponent,
               e.date AS event_date
        FROM event_selections s
        JOIN events e ON e.id = s.event_id
    """

    async def fetch_all(self) -> tuple[list[SelectionRecord], list[MalformedEntry]]:
        rows = await self._fetch_paged(
            self._SELECT
            + """
            WHERE ($1::uuid IS NULL OR s.id > $1::uuid)
            ORDER BY s.id
            LIMIT $2
            """
        )
        selections: list[SelectionRecord] = []
        malformed: list[MalformedEntry] = []
        for row in rows:
            selection, bad = SelectionRecord.from_record(row)
            selections.append(selection)
            malformed.extend(bad)
        if malformed:
            logger.warning(
                f"Quarantined {len(malformed)} malformed entries "
                f"across {len(selections)} selections"
            )
        return selections, malformed

    async def remove_player_references(
        self, selection_id: str, player_ids: set[str]
    ) -> int:
        row = await self.db.fetchrow(
            """
            SELECT player_positions, substitute_players
            FROM event_selections WHERE id = $1::uuid
            """,
            selection_id,
        )
        if row is None:
            return 0

        positions, removed_positions = strip_player_references(
            row["player_positions"], player_ids
        )
        substitutes, removed_substitutes = strip_player_references(
            row["substitute_players"], player_ids
        )
        removed = removed_positions + removed_substitutes
        if removed == 0:
            return 0

        await self.db.execute(
            """
            UPDATE event_selections
            SET player_positions = CASE WHEN $2 THEN $3::jsonb ELSE player_positions END,
                substitute_players = CASE WHEN $4 THEN $5::jsonb ELSE substitute_players END,
                updated_at = NOW()
            WHERE id = $1::uuid
            """,
            selection_id,
            removed_positions > 0,
            json.dumps(positions),
            removed_substitutes > 0,
            json.dumps(substitutes),
        )
        logger.debug(f"Removed {removed} references from selection {selection_id}")
        return removed


class EventStatRepository(_PagedRepository):
    """event_player_stats table."""

    _COLUMNS = """
        id, event_id, player_id, position, minutes_played, is_substitute,
        period_number, team_number
    """

    async def fetch_all(self) -> list[DerivedEventStat]:
        rows = await self._fetch_paged(
            f"""
            SELECT {self._COLUMNS} FROM event_player_stats
            WHERE ($1::uuid IS NULL OR id > $1::uuid)
            ORDER BY id
            LIMIT $2
            """
        )
        return [DerivedEventStat.from_record(row) for row in rows]

    async def fetch_player_ids(self) -> set[str]:
        rows = await self.db.fetch(
            "SELECT DISTINCT player_id FROM event_player_stats WHERE player_id IS NOT NULL"
        )
        return {str(row["player_id"]) for row in rows}

    async def count(self) -> int:
        result = await self.db.fetchval("SELECT COUNT(*) FROM event_player_stats")
        return int(result) if result else 0

    async def delete_all(self) -> int:
        status = await self.db.execute("DELETE FROM event_player_stats")
        return _affected_rows(status)

    async def delete_for_event(self, event_id: str) -> int:
        status = await self.db.execute(
            "DELETE FROM event_player_stats WHERE event_id = $1::uuid", event_id
        )
        return _affected_rows(status)


class AggregateRepository(_PagedRepository):
    """players.match_stats rollups."""

    async def fetch_all(self) -> list[AggregateRecord]:
        rows = await self._fetch_paged(
            """
            SELECT id, match_stats FROM players
            WHERE match_stats IS NOT NULL
              AND ($1::uuid IS NULL OR id > $1::uuid)
            ORDER BY id
            LIMIT $2
            """
        )
        return [AggregateRecord.from_record(row) for row in rows]


class DatabaseStatsRecomputer:
    """Invokes the server-side recomputation functions."""

    def __init__(self, db: DatabaseService) -> None:
        self.db = db

    async def regenerate_event_stats(self) -> None:
        await self.db.execute("SELECT regenerate_all_event_player_stats()")

    async def recompute_player_aggregate(self, player_id: str) -> None:
        await self.db.execute("SELECT update_player_match_stats($1::uuid)", player_id)

    async def recompute_all_aggregates(self) -> None:
        await self.db.execute("SELECT update_all_completed_events_stats()")


def build_data_access(
    db: DatabaseService, *, page_size: int = DEFAULT_PAGE_SIZE
) -> DataAccess:
    """Wire every repository to one database service."""
    return DataAccess(
        players=PlayerRepository(db, page_size=page_size),
        selections=SelectionRepository(db, page_size=page_size),
        event_stats=EventStatRepository(db, page_size=page_size),
        aggregates=AggregateRepository(db, page_size=page_size),
        recomputer=DatabaseStatsRecomputer(db),
    )
