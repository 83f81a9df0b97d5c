"""Spore endpoints for the SporeTag API."""

import json
from typing import Any

from fastapi import APIRouter, Query, Request, Response, status
from fastapi.responses import JSONResponse

from sporetag.api.v1.dependencies import SporeServiceDep
from sporetag.core.settings import settings
from sporetag.schemas.spore import ErrorResponse, SporeCreatedResponse, SporePage
from sporetag.services.spore_service import (
    FailureKind,
    ServiceFailure,
    resolve_client_ip,
)

router = APIRouter(prefix="/spores", tags=["spores"])

_STATUS_BY_FAILURE: dict[FailureKind, int] = {
    FailureKind.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    FailureKind.TOO_MANY_REQUESTS: status.HTTP_429_TOO_MANY_REQUESTS,
    FailureKind.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _failure_response(failure: ServiceFailure) -> JSONResponse:
    headers: dict[str, str] = {}
    if failure.retry_after_seconds is not None:
        headers["Retry-After"] = str(failure.retry_after_seconds)
    return JSONResponse(
        status_code=_STATUS_BY_FAILURE[failure.kind],
        content={"error": failure.error},
        headers=headers or None,
    )


def _cors_headers() -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": ", ".join(settings.cors_origins),
        "Access-Control-Allow-Methods": ", ".join(settings.cors_allow_methods),
        "Access-Control-Allow-Headers": ", ".join(settings.cors_allow_headers),
    }


async def _read_json(request: Request) -> Any:
    """Return the decoded body, or None when it is empty or not JSON."""
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


@router.post(
    "",
    response_model=SporeCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_429_TOO_MANY_REQUESTS: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)
async def create_spore(request: Request, service: SporeServiceDep) -> Any:
    """Drop a new spore on the map.

    Args:
        request: Incoming request; the body is validated by the service layer.
        service: Spore service injected by FastAPI.

    Returns:
        The id of the stored spore, or an error envelope.
    """
    payload = await _read_json(request)
    outcome = service.submit(payload, client_ip=resolve_client_ip(request.headers))
    if isinstance(outcome, ServiceFailure):
        return _failure_response(outcome)
    return SporeCreatedResponse(id=outcome.id)


@router.get(
    "",
    response_model=SporePage,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)
async def list_spores(
    service: SporeServiceDep,
    min_lat: str | None = Query(None, alias="minLat", description="Southern edge"),
    max_lat: str | None = Query(None, alias="maxLat", description="Northern edge"),
    min_lng: str | None = Query(None, alias="minLng", description="Western edge"),
    max_lng: str | None = Query(None, alias="maxLng", description="Eastern edge"),
    cursor: str | None = Query(None, description="Return spores with id greater than this"),
    limit: str | None = Query(None, description="Maximum number of spores to return"),
) -> Any:
    """List spores in ascending id order with optional bounding box and paging.

    Values arrive as raw strings so malformed numbers are reported as 400
    errors in the standard envelope.
    """
    outcome = service.query(
        {
            "minLat": min_lat,
            "maxLat": max_lat,
            "minLng": min_lng,
            "maxLng": max_lng,
            "cursor": cursor,
            "limit": limit,
        }
    )
    if isinstance(outcome, ServiceFailure):
        return _failure_response(outcome)
    return outcome


@router.options("", status_code=status.HTTP_200_OK)
async def spores_options() -> Response:
    """Answer CORS preflight requests with an empty body."""
    return Response(status_code=status.HTTP_200_OK, headers=_cors_headers())
