"""Database services."""

from squad_integrity.services.db.connection import DatabaseError, DatabaseService
from squad_integrity.services.db.protocol import (
    AggregateStore,
    DataAccess,
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
    build_data_access,
)

__all__ = [
    "AggregateRepository",
    "AggregateStore",
    "DataAccess",
    "DatabaseError",
    "DatabaseService",
    "DatabaseStatsRecomputer",
    "EventStatRepository",
    "EventStatStore",
    "PlayerRepository",
    "PlayerStore",
    "SelectionRepository",
    "SelectionStore",
    "StatsRecomputer",
    "build_data_access",
]
