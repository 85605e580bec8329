"""Data-access interfaces consumed by the integrity engine.

The engine never talks to the database directly. It depends on these
structural protocols, which the asyncpg repositories implement for
production and simple in-memory stores implement in tests.

Every method may raise DatabaseError on a store failure.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from squad_integrity.models import (
        AggregateRecord,
        DerivedEventStat,
        MalformedEntry,
        Player,
        SelectionRecord,
    )


@runtime_checkable
class PlayerStore(Protocol):
    """Read access to the player roster."""

    async def ping(self) -> bool:
        """Cheap existence query used as a connectivity check."""
        ...

    async def fetch_all(self) -> list[Player]:
        ...


@runtime_checkable
class SelectionStore(Protocol):
    """Selection records joined with event metadata."""

    async def fetch_all(self) -> tuple[list[SelectionRecord], list[MalformedEntry]]:
        """All selections in stable order, plus quarantined list elements."""
        ...

    async def remove_player_references(
        self, selection_id: str, player_ids: set[str]
    ) -> int:
        """Drop every position and substitute element naming player_ids.

        Returns:
            Number of elements removed (0 leaves the record untouched)
        """
        ...


@runtime_checkable
class EventStatStore(Protocol):
    """Per-event derived statistics."""

    async def fetch_all(self) -> list[DerivedEventStat]:
        ...

    async def fetch_player_ids(self) -> set[str]:
        """Distinct player ids with at least one derived row."""
        ...

    async def count(self) -> int:
        ...

    async def delete_all(self) -> int:
        ...

    async def delete_for_event(self, event_id: str) -> int:
        ...


@runtime_checkable
class AggregateStore(Protocol):
    """Per-player aggregate rollups."""

    async def fetch_all(self) -> list[AggregateRecord]:
        ...


@runtime_checkable
class StatsRecomputer(Protocol):
    """Opaque server-side recomputation routines."""

    async def regenerate_event_stats(self) -> None:
        ...

    async def recompute_player_aggregate(self, player_id: str) -> None:
        ...

    async def recompute_all_aggregates(self) -> None:
        ...


@dataclass(frozen=True, slots=True)
class DataAccess:
    """Bundle of the collaborators one engine instance works against."""

    players: PlayerStore
    selections: SelectionStore
    event_stats: EventStatStore
    aggregates: AggregateStore
    recomputer: StatsRecomputer
