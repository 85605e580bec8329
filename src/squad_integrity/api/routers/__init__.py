"""API routers."""

from squad_integrity.api.routers import health, integrity

__all__ = ["health", "integrity"]
