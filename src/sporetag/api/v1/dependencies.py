"""Shared API dependencies."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from sporetag.db.session import get_db
from sporetag.services.rate_limit import RateLimiter, get_rate_limiter
from sporetag.services.spore_service import SporeService

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]

# Type alias for rate limiter dependency
RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter)]


def get_spore_service(db: SessionDep, rate_limiter: RateLimiterDep) -> SporeService:
    """Build the spore service for the current request."""
    return SporeService(db, rate_limiter)


SporeServiceDep = Annotated[SporeService, Depends(get_spore_service)]
