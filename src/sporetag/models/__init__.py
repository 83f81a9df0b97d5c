"""SQLAlchemy models for the SporeTag service."""

from .spore import Spore

__all__ = ["Spore"]
