"""Business logic services for the SporeTag service."""

from .rate_limit import RateLimiter, RateLimitStore, get_rate_limiter
from .spore_service import FailureKind, ServiceFailure, SporeService, SubmitSuccess

__all__ = [
    "FailureKind",
    "RateLimitStore",
    "RateLimiter",
    "ServiceFailure",
    "SporeService",
    "SubmitSuccess",
    "get_rate_limiter",
]
