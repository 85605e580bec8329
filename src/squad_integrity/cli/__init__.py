"""Squad Integrity CLI module.

Provides command-line tools for consistency checks and repair.

Usage:
    python -m squad_integrity.cli check
    python -m squad_integrity.cli repair
    python -m squad_integrity.cli inspect-player PLAYER_ID
    python -m squad_integrity.cli repair-event EVENT_ID
"""
