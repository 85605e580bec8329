"""Services: database access, retry policy and the integrity engine facade.

The engine facade lives in squad_integrity.services.integrity_service and is
imported from there directly.
"""

from squad_integrity.services.db import DatabaseError, DatabaseService
from squad_integrity.services.retry_handler import RetryConfig, RetryHandler, RetryResult

__all__ = [
    "DatabaseError",
    "DatabaseService",
    "RetryConfig",
    "RetryHandler",
    "RetryResult",
]
