"""HTTP surface for the integrity engine.

Run with:
    uvicorn squad_integrity.api.main:app
"""
