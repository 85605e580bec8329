"""Unit tests for the PostgreSQL repositories."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from squad_integrity.services.db.protocol import (
    AggregateStore,
    EventStatStore,
    PlayerStore,
    SelectionStore,
    StatsRecomputer,
)
from squad_integrity.services.db.repositories import (
    AggregateRepository,
    DatabaseStatsRecomputer,
    EventStatRepository,
    PlayerRepository,
    SelectionRepository,
    _affected_rows,
    build_data_access,
)


@pytest.fixture
def mock_db() -> MagicMock:
    """DatabaseService double with async query methods."""
    db = MagicMock()
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    db.fetchval = AsyncMock(return_value=None)
    db.execute = AsyncMock(return_value="UPDATE 1")
    return db


class TestAffectedRows:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [("DELETE 12", 12), ("UPDATE 0", 0), ("SELECT", 0), ("", 0)],
    )
    def test_parses_status(self, status: str, expected: int) -> None:
        assert _affected_rows(status) == expected


class TestPaging:
    """Keyset pagination over large tables."""

    @pytest.mark.asyncio
    async def test_reads_until_short_page(self, mock_db: MagicMock) -> None:
        mock_db.fetch.side_effect = [
            [{"id": "a", "name": "A"}, {"id": "b", "name": "B"}],
            [{"id": "c", "name": "C"}],
        ]
        repo = PlayerRepository(mock_db, page_size=2)

        players = await repo.fetch_all()

        assert [p.player_id for p in players] == ["a", "b", "c"]
        first, second = mock_db.fetch.await_args_list
        assert first.args[1:] == (None, 2)
        assert second.args[1:] == ("b", 2)

    @pytest.mark.asyncio
    async def test_exact_page_needs_one_more_query(self, mock_db: MagicMock) -> None:
        mock_db.fetch.side_effect = [[{"id": "a", "name": "A"}], []]
        repo = PlayerRepository(mock_db, page_size=1)

        players = await repo.fetch_all()

        assert len(players) == 1
        assert mock_db.fetch.await_count == 2


class TestSelectionRepository:
    """Tests for SelectionRepository."""

    @pytest.mark.asyncio
    async def test_fetch_all_collects_malformed(self, mock_db: MagicMock) -> None:
        mock_db.fetch.return_value = [
            {
                "id": "S1",
                "event_id": "E1",
                "team_id": None,
                "team_number": 1,
                "period_number": 1,
                "duration_minutes": 90,
                "player_positions": json.dumps([{"playerId": "P1", "position": "CB"}, 7]),
                "substitute_players": None,
                "event_title": "Cup",
                "event_opponent": None,
                "event_date": None,
            }
        ]

        selections, malformed = await SelectionRepository(mock_db).fetch_all()

        assert len(selections) == 1
        assert selections[0].positions[0].player_id == "P1"
        assert len(malformed) == 1
        assert malformed[0].index == 1

    @pytest.mark.asyncio
    async def test_remove_references_updates_changed_lists(
        self, mock_db: MagicMock
    ) -> None:
        mock_db.fetchrow.return_value = {
            "player_positions": [
                {"playerId": "P1", "position": "CB"},
                {"playerId": "GHOST", "position": "ST"},
            ],
            "substitute_players": ["P2"],
        }
        repo = SelectionRepository(mock_db)

        removed = await repo.remove_player_references("S1", {"GHOST"})

        assert removed == 1
        args = mock_db.execute.await_args.args
        assert "UPDATE event_selections" in args[0]
        assert args[1] == "S1"
        assert args[2] is True
        assert json.loads(args[3]) == [{"playerId": "P1", "position": "CB"}]
        assert args[4] is False

    @pytest.mark.asyncio
    async def test_remove_references_noop(self, mock_db: MagicMock) -> None:
        mock_db.fetchrow.return_value = {
            "player_positions": [{"playerId": "P1", "position": "CB"}],
            "substitute_players": [],
        }

        removed = await SelectionRepository(mock_db).remove_player_references(
            "S1", {"GHOST"}
        )

        assert removed == 0
        mock_db.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_remove_references_missing_selection(self, mock_db: MagicMock) -> None:
        assert await SelectionRepository(mock_db).remove_player_references("S9", {"P"}) == 0


class TestEventStatRepository:
    """Tests for EventStatRepository."""

    @pytest.mark.asyncio
    async def test_fetch_player_ids(self, mock_db: MagicMock) -> None:
        mock_db.fetch.return_value = [{"player_id": "P1"}, {"player_id": "P2"}]

        assert await EventStatRepository(mock_db).fetch_player_ids() == {"P1", "P2"}

    @pytest.mark.asyncio
    async def test_count(self, mock_db: MagicMock) -> None:
        mock_db.fetchval.return_value = 17
        assert await EventStatRepository(mock_db).count() == 17

        mock_db.fetchval.return_value = None
        assert await EventStatRepository(mock_db).count() == 0

    @pytest.mark.asyncio
    async def test_deletes_report_row_counts(self, mock_db: MagicMock) -> None:
        mock_db.execute.return_value = "DELETE 4"
        repo = EventStatRepository(mock_db)

        assert await repo.delete_all() == 4
        assert await repo.delete_for_event("E1") == 4
        assert mock_db.execute.await_args.args[1] == "E1"


class TestAggregateRepository:
    @pytest.mark.asyncio
    async def test_fetch_all(self, mock_db: MagicMock) -> None:
        mock_db.fetch.return_value = [
            {"id": "P1", "match_stats": {"minutesByPosition": {"GK": 180}}}
        ]

        aggregates = await AggregateRepository(mock_db).fetch_all()

        assert aggregates[0].minutes_at("GK") == 180


class TestRecomputer:
    @pytest.mark.asyncio
    async def test_calls_server_functions(self, mock_db: MagicMock) -> None:
        recomputer = DatabaseStatsRecomputer(mock_db)

        await recomputer.regenerate_event_stats()
        await recomputer.recompute_player_aggregate("P1")
        await recomputer.recompute_all_aggregates()

        statements = [c.args[0] for c in mock_db.execute.await_args_list]
        assert statements == [
            "SELECT regenerate_all_event_player_stats()",
            "SELECT update_player_match_stats($1::uuid)",
            "SELECT update_all_completed_events_stats()",
        ]


class TestBuildDataAccess:
    def test_wires_protocols(self, mock_db: MagicMock) -> None:
        access = build_data_access(mock_db, page_size=50)

        assert isinstance(access.players, PlayerStore)
        assert isinstance(access.selections, SelectionStore)
        assert isinstance(access.event_stats, EventStatStore)
        assert isinstance(access.aggregates, AggregateStore)
        assert isinstance(access.recomputer, StatsRecomputer)
        assert access.players.page_size == 50  # type: ignore[attr-defined]
