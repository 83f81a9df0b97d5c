"""Write and read paths for spores."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final

from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sporetag.models.spore import Spore
from sporetag.schemas.spore import Pagination, SporePage, SporeResponse
from sporetag.services import query_builder
from sporetag.services.rate_limit import RateLimiter
from sporetag.services.validation import validate

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT_IP: Final[str] = "unknown"
# Checked in order; the first header present wins.
CLIENT_IP_HEADERS: Final[tuple[str, ...]] = ("cf-connecting-ip", "x-forwarded-for")

CREATE_FAILED: Final[str] = "Failed to create spore"
FETCH_FAILED: Final[str] = "Failed to fetch spores"


class FailureKind(str, Enum):
    """How a request failed, independent of transport."""

    BAD_REQUEST = "bad_request"
    TOO_MANY_REQUESTS = "too_many_requests"
    INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True)
class ServiceFailure:
    """A failed outcome with a message that is safe to show the caller."""

    kind: FailureKind
    error: str
    retry_after_seconds: int | None = None


@dataclass(frozen=True)
class SubmitSuccess:
    """A stored spore."""

    id: int
    created: bool = True


def resolve_client_ip(headers: Mapping[str, str]) -> str:
    """Return the best-effort network origin of a request.

    Args:
        headers: Request headers. Lookups are case-insensitive when given
            Starlette headers; plain dicts should use lower-case keys.
    """
    for name in CLIENT_IP_HEADERS:
        value = headers.get(name)
        if value:
            return value
    return UNKNOWN_CLIENT_IP


class SporeService:
    """Coordinates validation, throttling and persistence for spores."""

    def __init__(self, session: Session, rate_limiter: RateLimiter) -> None:
        self.session = session
        self.rate_limiter = rate_limiter

    def submit(
        self,
        payload: Any,
        *,
        client_ip: str = UNKNOWN_CLIENT_IP,
    ) -> SubmitSuccess | ServiceFailure:
        """Validate, throttle and store one submission.

        The pipeline stops at the first failure and never retries.

        Args:
            payload: Decoded request body, or ``None`` when absent.
            client_ip: Origin recorded alongside the spore.

        Returns:
            ``SubmitSuccess`` with the new id, or a ``ServiceFailure`` of kind
            ``BAD_REQUEST``, ``TOO_MANY_REQUESTS`` or ``INTERNAL_ERROR``.
        """
        verdict = validate(payload)
        if not verdict.valid:
            return ServiceFailure(FailureKind.BAD_REQUEST, verdict.error.message)
        submission = verdict.data

        try:
            decision = self.rate_limiter.check(submission.cookie_id)
        except RedisError:
            logger.exception("Rate-limit store unavailable")
            return ServiceFailure(FailureKind.INTERNAL_ERROR, CREATE_FAILED)

        if not decision.allowed:
            return ServiceFailure(
                FailureKind.TOO_MANY_REQUESTS,
                "Rate limit exceeded. You can only create "
                f"{self.rate_limiter.max_submissions} spores per hour.",
                retry_after_seconds=decision.retry_after_seconds,
            )

        spore = Spore(
            lat=submission.lat,
            lng=submission.lng,
            message=submission.message,
            cookie_id=submission.cookie_id,
            ip_address=client_ip,
        )
        try:
            self.session.add(spore)
            self.session.commit()
            self.session.refresh(spore)
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Database insert failed")
            return ServiceFailure(FailureKind.INTERNAL_ERROR, CREATE_FAILED)

        logger.debug("Stored spore %s for %s", spore.id, submission.cookie_id)
        return SubmitSuccess(id=spore.id)

    def query(self, params: Mapping[str, str | None]) -> SporePage | ServiceFailure:
        """List spores matching optional bounding-box and cursor filters.

        ``total`` counts the filtered set, ignoring cursor and limit.
        ``nextCursor`` is set only when a limit was given and the page is full.
        """
        try:
            filters = query_builder.parse_filters(params)
        except query_builder.MalformedQueryParameter as exc:
            return ServiceFailure(FailureKind.BAD_REQUEST, str(exc))

        statements = query_builder.build(filters)
        try:
            spores = list(self.session.scalars(statements.data))
            total = int(self.session.scalar(statements.count) or 0)
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Database query failed")
            return ServiceFailure(FailureKind.INTERNAL_ERROR, FETCH_FAILED)

        next_cursor: int | None = None
        if filters.limit is not None and spores and len(spores) == filters.limit:
            next_cursor = spores[-1].id

        return SporePage(
            spores=[SporeResponse.model_validate(spore) for spore in spores],
            total=total,
            pagination=Pagination(
                cursor=filters.cursor,
                next_cursor=next_cursor,
                limit=filters.limit,
                has_more=next_cursor is not None,
            ),
        )
