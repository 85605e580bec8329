"""Cross-layer consistency checking and repair for squad statistics.

Audits the three representations of who played where (selection records,
per-event derived stats and per-player aggregates) and repairs drift between
them by purging dangling references and re-deriving the caches.
"""

__version__ = "0.1.0"
