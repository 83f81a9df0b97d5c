"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .spore import (
    ErrorResponse,
    Pagination,
    SporeCreatedResponse,
    SporePage,
    SporeResponse,
    SporeSubmission,
)

__all__ = [
    "ErrorResponse",
    "Pagination",
    "SporeCreatedResponse",
    "SporePage",
    "SporeResponse",
    "SporeSubmission",
]
