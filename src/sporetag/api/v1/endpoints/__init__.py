"""API endpoint modules for version 1."""

from .spores import router as spores_router

__all__ = ["spores_router"]
