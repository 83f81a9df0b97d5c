"""Validation of incoming spore submissions."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final

from sporetag.schemas.spore import SporeSubmission

MAX_MESSAGE_LENGTH: Final[int] = 280
MIN_LATITUDE: Final[float] = -90.0
MAX_LATITUDE: Final[float] = 90.0
MIN_LONGITUDE: Final[float] = -180.0
MAX_LONGITUDE: Final[float] = 180.0


class ValidationErrorKind(str, Enum):
    """Reasons a submission can be rejected, in the order they are checked."""

    MISSING_BODY = "missing_body"
    INVALID_LATITUDE = "invalid_latitude"
    INVALID_LONGITUDE = "invalid_longitude"
    INVALID_MESSAGE_TYPE = "invalid_message_type"
    EMPTY_MESSAGE = "empty_message"
    MESSAGE_TOO_LONG = "message_too_long"
    MISSING_IDENTITY = "missing_identity"

    @property
    def message(self) -> str:
        """Return the client-facing description of this failure."""
        return _ERROR_MESSAGES[self]


_ERROR_MESSAGES: Final[dict[ValidationErrorKind, str]] = {
    ValidationErrorKind.MISSING_BODY: "Request body is required",
    ValidationErrorKind.INVALID_LATITUDE: "Invalid latitude: must be a number between -90 and 90",
    ValidationErrorKind.INVALID_LONGITUDE: (
        "Invalid longitude: must be a number between -180 and 180"
    ),
    ValidationErrorKind.INVALID_MESSAGE_TYPE: "Message must be a string",
    ValidationErrorKind.EMPTY_MESSAGE: "Message cannot be empty",
    ValidationErrorKind.MESSAGE_TOO_LONG: (
        f"Message must be {MAX_MESSAGE_LENGTH} characters or less"
    ),
    ValidationErrorKind.MISSING_IDENTITY: "Cookie ID is required",
}


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a submission.

    Exactly one of ``data`` and ``error`` is set.
    """

    data: SporeSubmission | None = None
    error: ValidationErrorKind | None = None

    @property
    def valid(self) -> bool:
        return self.error is None


def message_length(message: str) -> int:
    """Return the length of ``message`` in UTF-16 code units.

    Characters outside the Basic Multilingual Plane (most emoji) count twice,
    matching what browsers report for ``String.length``.
    """
    return len(message.encode("utf-16-le")) // 2


def _is_coordinate(value: Any, lower: float, upper: float) -> bool:
    # bool is an int subclass but not a number on the wire.
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    # int/float comparison is exact, so huge JSON integers never reach float().
    if isinstance(value, float) and not math.isfinite(value):
        return False
    return lower <= value <= upper


def _fail(kind: ValidationErrorKind) -> ValidationResult:
    return ValidationResult(error=kind)


def validate(payload: Any) -> ValidationResult:
    """Check a decoded request body and return a typed verdict.

    Checks run in a fixed order and stop at the first failure. The function
    has no side effects, so the same payload always yields the same result.

    Args:
        payload: The decoded JSON body, or ``None`` when the body is absent.

    Returns:
        A ``ValidationResult`` carrying either the cleaned submission or the
        kind of the first failed check.
    """
    if payload is None or not isinstance(payload, dict):
        return _fail(ValidationErrorKind.MISSING_BODY)

    lat = payload.get("lat")
    if not _is_coordinate(lat, MIN_LATITUDE, MAX_LATITUDE):
        return _fail(ValidationErrorKind.INVALID_LATITUDE)

    lng = payload.get("lng")
    if not _is_coordinate(lng, MIN_LONGITUDE, MAX_LONGITUDE):
        return _fail(ValidationErrorKind.INVALID_LONGITUDE)

    message = payload.get("message")
    if not isinstance(message, str):
        return _fail(ValidationErrorKind.INVALID_MESSAGE_TYPE)

    length = message_length(message)
    if length == 0:
        return _fail(ValidationErrorKind.EMPTY_MESSAGE)
    if length > MAX_MESSAGE_LENGTH:
        return _fail(ValidationErrorKind.MESSAGE_TOO_LONG)

    cookie_id = payload.get("cookie_id")
    if not isinstance(cookie_id, str) or not cookie_id:
        return _fail(ValidationErrorKind.MISSING_IDENTITY)

    return ValidationResult(
        data=SporeSubmission(
            lat=float(lat),
            lng=float(lng),
            message=message,
            cookie_id=cookie_id,
        )
    )
