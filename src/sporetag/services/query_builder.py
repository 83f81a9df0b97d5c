"""Translate bounding-box and cursor filters into SQLAlchemy statements."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

from sqlalchemy import Select, func, select
from sqlalchemy.sql.elements import ColumnElement

from sporetag.models.spore import Spore

__all__ = [
    "GeoFilters",
    "MalformedQueryParameter",
    "SporeQuery",
    "build",
    "parse_filters",
]

_COORDINATE_PARAMS: Final[dict[str, str]] = {
    "minLat": "min_lat",
    "maxLat": "max_lat",
    "minLng": "min_lng",
    "maxLng": "max_lng",
}
# Cursor and limit are bound as SQL integers.
MIN_SQL_INTEGER: Final[int] = -(2**63)
MAX_SQL_INTEGER: Final[int] = 2**63 - 1


class MalformedQueryParameter(ValueError):
    """Raised when a query-string value cannot be parsed."""

    def __init__(self, name: str, expected: str) -> None:
        super().__init__(f"Invalid query parameter '{name}': must be {expected}")
        self.name = name


@dataclass(frozen=True)
class GeoFilters:
    """Optional filters for listing spores.

    Bounding-box edges are independent inequalities. A partial or inverted
    box is passed through as given.
    """

    min_lat: float | None = None
    max_lat: float | None = None
    min_lng: float | None = None
    max_lng: float | None = None
    cursor: int | None = None
    limit: int | None = None


@dataclass(frozen=True)
class SporeQuery:
    """Data statement and matching count statement."""

    data: Select
    count: Select


def _present(params: Mapping[str, str | None], name: str) -> str | None:
    value = params.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _parse_coordinate(name: str, raw: str) -> float:
    if "_" in raw:
        raise MalformedQueryParameter(name, "a number")
    try:
        value = float(raw)
    except ValueError as exc:
        raise MalformedQueryParameter(name, "a number") from exc
    if not math.isfinite(value):
        raise MalformedQueryParameter(name, "a finite number")
    return value


def _parse_int(name: str, raw: str, expected: str) -> int:
    if "_" in raw:
        raise MalformedQueryParameter(name, expected)
    try:
        value = int(raw)
    except ValueError as exc:
        raise MalformedQueryParameter(name, expected) from exc
    if not MIN_SQL_INTEGER <= value <= MAX_SQL_INTEGER:
        raise MalformedQueryParameter(name, f"{expected} in the signed 64-bit range")
    return value


def parse_filters(params: Mapping[str, str | None]) -> GeoFilters:
    """Parse raw query parameters into ``GeoFilters``.

    Absent or blank parameters produce no filter. Anything else that does not
    parse is rejected rather than coerced.

    Raises:
        MalformedQueryParameter: If a present value is not valid for its parameter.
    """
    values: dict[str, float | int] = {}
    for param, field in _COORDINATE_PARAMS.items():
        raw = _present(params, param)
        if raw is not None:
            values[field] = _parse_coordinate(param, raw)

    raw_cursor = _present(params, "cursor")
    if raw_cursor is not None:
        values["cursor"] = _parse_int("cursor", raw_cursor, "an integer")

    raw_limit = _present(params, "limit")
    if raw_limit is not None:
        limit = _parse_int("limit", raw_limit, "a positive integer")
        if limit < 1:
            raise MalformedQueryParameter("limit", "a positive integer")
        values["limit"] = limit

    return GeoFilters(**values)


def _box_conditions(filters: GeoFilters) -> list[ColumnElement[bool]]:
    conditions: list[ColumnElement[bool]] = []
    if filters.min_lat is not None:
        conditions.append(Spore.lat >= filters.min_lat)
    if filters.max_lat is not None:
        conditions.append(Spore.lat <= filters.max_lat)
    if filters.min_lng is not None:
        conditions.append(Spore.lng >= filters.min_lng)
    if filters.max_lng is not None:
        conditions.append(Spore.lng <= filters.max_lng)
    return conditions


def build(filters: GeoFilters) -> SporeQuery:
    """Build the page statement and the total-count statement for ``filters``.

    Both statements share the bounding-box conditions. The cursor and limit
    only apply to the page; the count describes the whole filtered set.
    Values are always bound as parameters.
    """
    conditions = _box_conditions(filters)

    data = select(Spore)
    page_conditions = list(conditions)
    if filters.cursor is not None:
        page_conditions.append(Spore.id > filters.cursor)
    if page_conditions:
        data = data.where(*page_conditions)
    data = data.order_by(Spore.id.asc())
    if filters.limit is not None:
        data = data.limit(filters.limit)

    count = select(func.count()).select_from(Spore)
    if conditions:
        count = count.where(*conditions)

    return SporeQuery(data=data, count=count)
