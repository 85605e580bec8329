"""Snapshot loading.

Assembles a consistent, read-only, in-memory view of the four entity
collections for one validation pass. Loading never mutates the store.

Example usage:
    loader = SnapshotLoader(access)
    try:
        snapshot = await loader.load()
    except LoadError as e:
        print(f"Aborted at {e.stage}: {e}")
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Literal, TypeVar

from squad_integrity.services.db.connection import DatabaseError
from squad_integrity.services.retry_handler import RetryHandler

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from squad_integrity.models import (
        AggregateRecord,
        DerivedEventStat,
        MalformedEntry,
        Player,
        SelectionRecord,
    )
    from squad_integrity.services.db.protocol import DataAccess

logger = logging.getLogger(__name__)

T = TypeVar("T")

LoadStage = Literal["connectivity", "players", "selections", "event_stats", "aggregates"]


class LoadError(Exception):
    """Raised when a snapshot cannot be assembled; fatal to the run."""

    def __init__(self, stage: LoadStage, message: str) -> None:
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        return f"[{self.stage}] {super().__str__()}"


@dataclass(frozen=True)
class Snapshot:
    """Read-only state of all collections at load time.

    Attributes:
        players: Player id to player
        player_ids: Existence set used for orphan detection
        selections: Selection records in store order
        event_stats: Derived stat rows
        stat_player_ids: Players with at least one derived stat row
        aggregates: Player id to aggregate rollup
        malformed: Quarantined position list elements
        loaded_at: When loading finished
    """

    players: dict[str, Player]
    player_ids: frozenset[str]
    selections: tuple[SelectionRecord, ...]
    event_stats: tuple[DerivedEventStat, ...]
    stat_player_ids: frozenset[str]
    aggregates: dict[str, AggregateRecord]
    malformed: tuple[MalformedEntry, ...] = ()
    loaded_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    _stat_index: dict[tuple[str, str], list[DerivedEventStat]] = field(
        default_factory=dict, repr=False, compare=False
    )

    @classmethod
    def build(
        cls,
        *,
        players: Iterable[Player],
        selections: Iterable[SelectionRecord],
        event_stats: Iterable[DerivedEventStat],
        aggregates: Iterable[AggregateRecord],
        stat_player_ids: Iterable[str] | None = None,
        malformed: Iterable[MalformedEntry] = (),
    ) -> Snapshot:
        """Assemble a snapshot and its lookup indexes."""
        player_map = {p.player_id: p for p in players}
        stats = tuple(event_stats)

        index: dict[tuple[str, str], list[DerivedEventStat]] = defaultdict(list)
        for stat in stats:
            index[(stat.event_id, stat.player_id)].append(stat)

        if stat_player_ids is None:
            stat_player_ids = (s.player_id for s in stats)

        return cls(
            players=player_map,
            player_ids=frozenset(player_map),
            selections=tuple(selections),
            event_stats=stats,
            stat_player_ids=frozenset(stat_player_ids),
            aggregates={a.player_id: a for a in aggregates},
            malformed=tuple(malformed),
            _stat_index=dict(index),
        )

    def stats_for(self, event_id: str, player_id: str) -> list[DerivedEventStat]:
        """Every derived row for (event, player)."""
        return list(self._stat_index.get((event_id, player_id), ()))

    def find_event_stat(
        self,
        event_id: str,
        player_id: str,
        period_number: int | None = None,
        team_number: int | None = None,
    ) -> DerivedEventStat | None:
        """Derived row matching a selection entry.

        Prefers the row for the same period and team; otherwise the first
        row for (event, player).
        """
        candidates = self._stat_index.get((event_id, player_id))
        if not candidates:
            return None
        for stat in candidates:
            if stat.period_number == period_number and stat.team_number == team_number:
                return stat
        for stat in candidates:
            if stat.period_number == period_number:
                return stat
        return candidates[0]

    def player_name(self, player_id: str) -> str:
        player = self.players.get(player_id)
        return player.name if player and player.name else player_id


class SnapshotLoader:
    """Reads the store into a Snapshot.

    Every read is retried at most once; a read that still fails aborts the
    load with a LoadError naming the stage.
    """

    def __init__(self, access: DataAccess, retry: RetryHandler | None = None) -> None:
        self.access = access
        self.retry = retry or RetryHandler()

    async def _read(self, stage: LoadStage, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            return await self.retry.execute(operation, operation_name=f"load_{stage}")
        except DatabaseError as e:
            logger.error(f"Snapshot load failed at {stage}: {e}")
            raise LoadError(stage, str(e)) from e

    async def load(self) -> Snapshot:
        """Load players, selections, derived stats and aggregates.

        Raises:
            LoadError: If the connectivity ping or any read fails.
        """
        reachable = await self._read("connectivity", self.access.players.ping)
        if not reachable:
            raise LoadError("connectivity", "store did not answer the ping")

        players = await self._read("players", self.access.players.fetch_all)
        logger.info(f"Loaded {len(players)} players")

        selections, malformed = await self._read(
            "selections", self.access.selections.fetch_all
        )
        logger.info(
            f"Loaded {len(selections)} selections ({len(malformed)} malformed entries)"
        )

        stat_player_ids = await self._read(
            "event_stats", self.access.event_stats.fetch_player_ids
        )
        event_stats = await self._read("event_stats", self.access.event_stats.fetch_all)
        logger.info(
            f"Loaded {len(event_stats)} derived stats "
            f"for {len(stat_player_ids)} players"
        )

        aggregates = await self._read("aggregates", self.access.aggregates.fetch_all)
        logger.info(f"Loaded {len(aggregates)} aggregates")

        return Snapshot.build(
            players=players,
            selections=selections,
            event_stats=event_stats,
            aggregates=aggregates,
            stat_player_ids=stat_player_ids,
            malformed=malformed,
        )
