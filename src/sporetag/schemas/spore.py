"""Spore-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SporeSubmission(BaseModel):
    """A submission that passed validation."""

    lat: float
    lng: float
    message: str
    cookie_id: str

    model_config = ConfigDict(frozen=True)


class SporeResponse(BaseModel):
    """Schema for spore information returned by the API.

    ``ip_address`` is deliberately absent; it never leaves the server.
    """

    id: int
    lat: float
    lng: float
    message: str
    cookie_id: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    """Cursor bookkeeping for a page of spores."""

    cursor: int | None = None
    next_cursor: int | None = Field(default=None, alias="nextCursor")
    limit: int | None = None
    has_more: bool = Field(default=False, alias="hasMore")

    model_config = ConfigDict(populate_by_name=True)


class SporePage(BaseModel):
    """A page of spores plus the size of the whole filtered set."""

    spores: list[SporeResponse]
    total: int
    pagination: Pagination


class SporeCreatedResponse(BaseModel):
    """Body returned after a spore is stored."""

    success: bool = True
    id: int
    message: str = "Spore created successfully"


class ErrorResponse(BaseModel):
    """Uniform error envelope."""

    error: str
