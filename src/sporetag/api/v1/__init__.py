"""Version 1 API endpoints."""

from .endpoints import spores_router

__all__ = ["spores_router"]
