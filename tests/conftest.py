"""Shared pytest fixtures for squad integrity tests.

Fixtures are organized into categories:
- In-memory store implementing the data-access protocols
- Fast retry and settings fixtures (no real sleeps)

The in-memory store keeps raw rows shaped like the database columns, so the
same parsing paths run as in production. Its recomputer rebuilds derived
stats and aggregates from selections the way the server-side functions do.

Usage:
    def test_example(store, fast_settings):
        store.add_player("P1", "Alex")
        store.add_selection("S1", "E1", [{"playerId": "P1", "position": "CB"}])
        service = IntegrityService(store.access(), settings=fast_settings)
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Any

import pytest

from squad_integrity.config.settings import IntegritySettings
from squad_integrity.models import (
    AggregateRecord,
    DerivedEventStat,
    MalformedEntry,
    Player,
    SelectionRecord,
    strip_player_references,
)
from squad_integrity.services.db.connection import DatabaseError
from squad_integrity.services.db.protocol import DataAccess
from squad_integrity.services.retry_handler import RetryConfig, RetryHandler

# =============================================================================
# In-memory store
# =============================================================================


class InMemoryStore:
    """Raw rows for all four collections plus failure injection.

    Attributes:
        players: Player id to row (id, name, match_stats)
        events: Event id to row (title, opponent, date)
        selections: Selection id to row (event_selections columns)
        event_stats: Derived rows (event_player_stats columns)
        failures: Operation name to number of calls that should fail
        calls: Operation names in call order
    """

    def __init__(self) -> None:
        self.players: dict[str, dict[str, Any]] = {}
        self.events: dict[str, dict[str, Any]] = {}
        self.selections: dict[str, dict[str, Any]] = {}
        self.event_stats: list[dict[str, Any]] = []
        self.failures: dict[str, int] = {}
        self.calls: list[str] = []
        self._stat_counter = 0

    # -- fixtures helpers ----------------------------------------------------

    def add_player(
        self,
        player_id: str,
        name: str = "",
        minutes_by_position: dict[str, float] | None = None,
    ) -> None:
        match_stats = (
            {"minutesByPosition": dict(minutes_by_position)}
            if minutes_by_position is not None
            else None
        )
        self.players[player_id] = {"id": player_id, "name": name, "match_stats": match_stats}

    def add_event(
        self,
        event_id: str,
        title: str = "League match",
        opponent: str | None = "Rovers",
        event_date: date | None = date(2026, 3, 14),
    ) -> None:
        self.events[event_id] = {"title": title, "opponent": opponent, "date": event_date}

    def add_selection(
        self,
        selection_id: str,
        event_id: str,
        positions: Any,
        substitutes: Any = None,
        *,
        period_number: int = 1,
        team_number: int = 1,
        duration_minutes: float = 90,
        team_id: str = "T1",
    ) -> None:
        if event_id not in self.events:
            self.add_event(event_id)
        self.selections[selection_id] = {
            "id": selection_id,
            "event_id": event_id,
            "team_id": team_id,
            "team_number": team_number,
            "period_number": period_number,
            "duration_minutes": duration_minutes,
            "player_positions": positions,
            "substitute_players": substitutes if substitutes is not None else [],
        }

    def add_stat(
        self,
        event_id: str,
        player_id: str,
        position: str | None,
        minutes: float,
        *,
        is_substitute: bool = False,
        period_number: int = 1,
        team_number: int = 1,
    ) -> str:
        self._stat_counter += 1
        stat_id = f"ST{self._stat_counter:04d}"
        self.event_stats.append(
            {
                "id": stat_id,
                "event_id": event_id,
                "player_id": player_id,
                "position": position,
                "minutes_played": minutes,
                "is_substitute": is_substitute,
                "period_number": period_number,
                "team_number": team_number,
            }
        )
        return stat_id

    def fail(self, operation: str, times: int = 1) -> None:
        """Make the next `times` calls of operation raise DatabaseError."""
        self.failures[operation] = times

    def count_calls(self, operation: str) -> int:
        return self.calls.count(operation)

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        remaining = self.failures.get(operation, 0)
        if remaining > 0:
            self.failures[operation] = remaining - 1
            raise DatabaseError(f"{operation} unavailable")

    def joined_selection(self, selection_id: str) -> dict[str, Any]:
        row = dict(self.selections[selection_id])
        event = self.events.get(row["event_id"], {})
        row["event_title"] = event.get("title")
        row["event_opponent"] = event.get("opponent")
        row["event_date"] = event.get("date")
        return row

    def positions_of(self, selection_id: str) -> list[Any]:
        return list(self.selections[selection_id]["player_positions"])

    # -- recomputation -------------------------------------------------------

    def regenerate(self) -> None:
        """Rebuild every derived row from selections."""
        self.event_stats = []
        for selection_id in sorted(self.selections):
            selection, _ = SelectionRecord.from_record(self.joined_selection(selection_id))
            for entry in selection.positions:
                if entry.player_id not in self.players:
                    continue
                self.add_stat(
                    selection.event_id,
                    entry.player_id,
                    entry.position,
                    selection.minutes_for(entry),
                    is_substitute=entry.is_substitute,
                    period_number=selection.period_number,
                    team_number=selection.team_number or 1,
                )
            for entry in selection.substitutes:
                if entry.player_id not in self.players:
                    continue
                self.add_stat(
                    selection.event_id,
                    entry.player_id,
                    "SUB",
                    0,
                    is_substitute=True,
                    period_number=selection.period_number,
                    team_number=selection.team_number or 1,
                )

    def recompute_player(self, player_id: str) -> None:
        totals: dict[str, float] = defaultdict(float)
        for row in self.event_stats:
            if row["player_id"] != player_id or row["is_substitute"]:
                continue
            if row["minutes_played"] > 0 and row["position"]:
                totals[row["position"]] += row["minutes_played"]
        if player_id in self.players:
            self.players[player_id]["match_stats"] = (
                {"minutesByPosition": dict(totals)} if totals else None
            )

    def access(self) -> DataAccess:
        return DataAccess(
            players=FakePlayerStore(self),
            selections=FakeSelectionStore(self),
            event_stats=FakeEventStatStore(self),
            aggregates=FakeAggregateStore(self),
            recomputer=FakeRecomputer(self),
        )


class FakePlayerStore:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def ping(self) -> bool:
        self.store._enter("ping")
        return True

    async def fetch_all(self) -> list[Player]:
        self.store._enter("players.fetch_all")
        return [Player.from_record(self.store.players[k]) for k in sorted(self.store.players)]


class FakeSelectionStore:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def fetch_all(self) -> tuple[list[SelectionRecord], list[MalformedEntry]]:
        self.store._enter("selections.fetch_all")
        selections: list[SelectionRecord] = []
        malformed: list[MalformedEntry] = []
        for selection_id in sorted(self.store.selections):
            selection, bad = SelectionRecord.from_record(
                self.store.joined_selection(selection_id)
            )
            selections.append(selection)
            malformed.extend(bad)
        return selections, malformed

    async def remove_player_references(self, selection_id: str, player_ids: set[str]) -> int:
        self.store._enter("selections.remove_player_references")
        row = self.store.selections.get(selection_id)
        if row is None:
            return 0
        positions, removed_positions = strip_player_references(
            row["player_positions"], player_ids
        )
        substitutes, removed_substitutes = strip_player_references(
            row["substitute_players"], player_ids
        )
        if removed_positions:
            row["player_positions"] = positions
        if removed_substitutes:
            row["substitute_players"] = substitutes
        return removed_positions + removed_substitutes


class FakeEventStatStore:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def fetch_all(self) -> list[DerivedEventStat]:
        self.store._enter("event_stats.fetch_all")
        return [DerivedEventStat.from_record(row) for row in self.store.event_stats]

    async def fetch_player_ids(self) -> set[str]:
        self.store._enter("event_stats.fetch_player_ids")
        return {row["player_id"] for row in self.store.event_stats}

    async def count(self) -> int:
        self.store._enter("event_stats.count")
        return len(self.store.event_stats)

    async def delete_all(self) -> int:
        self.store._enter("event_stats.delete_all")
        deleted = len(self.store.event_stats)
        self.store.event_stats = []
        return deleted

    async def delete_for_event(self, event_id: str) -> int:
        self.store._enter("event_stats.delete_for_event")
        kept = [r for r in self.store.event_stats if r["event_id"] != event_id]
        deleted = len(self.store.event_stats) - len(kept)
        self.store.event_stats = kept
        return deleted


class FakeAggregateStore:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def fetch_all(self) -> list[AggregateRecord]:
        self.store._enter("aggregates.fetch_all")
        return [
            AggregateRecord.from_record(row)
            for _, row in sorted(self.store.players.items())
            if row["match_stats"] is not None
        ]


class FakeRecomputer:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def regenerate_event_stats(self) -> None:
        self.store._enter("regenerate_event_stats")
        self.store.regenerate()

    async def recompute_player_aggregate(self, player_id: str) -> None:
        self.store._enter("recompute_player_aggregate")
        self.store.recompute_player(player_id)

    async def recompute_all_aggregates(self) -> None:
        self.store._enter("recompute_all_aggregates")
        for player_id in self.store.players:
            self.store.recompute_player(player_id)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def store() -> InMemoryStore:
    """Empty in-memory store."""
    return InMemoryStore()


@pytest.fixture
def retry() -> RetryHandler:
    """Retry handler that does not sleep."""
    return RetryHandler(RetryConfig(base_delay=0, jitter_factor=0))


@pytest.fixture
def fast_settings() -> IntegritySettings:
    """Settings with no retry or re-validation delay."""
    return IntegritySettings(
        retry_base_delay=0,
        revalidation_delay_seconds=0,
        aggregate_batch_size=25,
        validation_workers=1,
    )


@pytest.fixture
def consistent_store(store: InMemoryStore) -> InMemoryStore:
    """One fully consistent player, selection, derived row and aggregate."""
    store.add_player("P1", "Alex Morgan", {"CB": 90})
    store.add_selection("S1", "E1", [{"playerId": "P1", "position": "CB", "minutes": 90}])
    store.add_stat("E1", "P1", "CB", 90)
    return store
