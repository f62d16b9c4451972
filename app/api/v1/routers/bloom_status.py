"""
API router for bloom status endpoints.
"""
import asyncio
import logging
from typing import Annotated, Awaitable, List, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from app.api.dependencies import BloomStatusStoreDep, SettingsDep, enforce_write_rate_limit
from app.api.v1.models.requests import BloomStatusUpdateRequest
from app.api.v1.models.responses import (
    BloomStatusReportResponse,
    ErrorResponse,
    NeighborhoodStatsResponse,
    RateLimitResponse,
    StreetStatusResponse,
)
from app.infrastructure.api_constants import APIConstants

logger = logging.getLogger(__name__)

T = TypeVar("T")

router = APIRouter(
    prefix="/bloom-status",
    tags=["bloom-status"],
)


async def _with_request_timeout(awaitable: Awaitable[T], timeout: float) -> T:
    """Await a store call, turning an overrun into a 504."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"Request timed out after {timeout}s")
        raise HTTPException(status_code=504, detail="Request timeout")


@router.get(
    "/recent",
    response_model=List[BloomStatusReportResponse],
    summary="Get the most recent reports",
    description="Return the most recent reports across all streets, newest first.",
)
async def get_recent_reports(
    store: BloomStatusStoreDep,
    limit: Annotated[
        int,
        Query(ge=1, le=APIConstants.MAX_RECENT_LIMIT, description="Number of reports to return"),
    ] = APIConstants.DEFAULT_RECENT_LIMIT,
) -> List[BloomStatusReportResponse]:
    reports = await store.get_recent_reports(limit)
    return [BloomStatusReportResponse.from_report(report) for report in reports]


@router.get(
    "/stats/{neighborhood:path}",
    response_model=NeighborhoodStatsResponse,
    response_model_exclude_unset=True,
    summary="Get neighborhood bloom statistics",
    description="""
    Count the streets of a neighborhood by their current status.

    Streets without any report count as unknown. If the aggregate cannot be
    computed in time the counts are zero and an `error` field is included.
    """,
    responses={
        504: {"description": "The request did not complete in time"},
    },
)
async def get_neighborhood_stats(
    neighborhood: Annotated[str, Path(description="Neighborhood name")],
    store: BloomStatusStoreDep,
    app_settings: SettingsDep,
) -> NeighborhoodStatsResponse:
    stats = await _with_request_timeout(
        store.get_neighborhood_stats(neighborhood),
        app_settings.request_timeout_seconds,
    )
    return NeighborhoodStatsResponse.from_stats(stats)


async def _street_status(street: str, store, app_settings) -> StreetStatusResponse:
    report = await _with_request_timeout(
        store.get_street_status(street),
        app_settings.request_timeout_seconds,
    )
    return StreetStatusResponse.from_report(report)


@router.get(
    "",
    response_model=StreetStatusResponse,
    response_model_exclude_none=True,
    summary="Get street bloom status (query form)",
)
async def get_street_status_by_query(
    street: Annotated[str, Query(min_length=1, description="Street name")],
    store: BloomStatusStoreDep,
    app_settings: SettingsDep,
) -> StreetStatusResponse:
    return await _street_status(street, store, app_settings)


@router.get(
    "/{street:path}",
    response_model=StreetStatusResponse,
    response_model_exclude_none=True,
    summary="Get street bloom status",
    description="""
    Return the most recent report for a street.

    Streets that were never reported return `{"status": "unknown"}`.
    """,
    responses={
        504: {"description": "The request did not complete in time"},
    },
)
async def get_street_status(
    street: Annotated[str, Path(description="Street name")],
    store: BloomStatusStoreDep,
    app_settings: SettingsDep,
) -> StreetStatusResponse:
    return await _street_status(street, store, app_settings)


@router.post(
    "",
    response_model=BloomStatusReportResponse,
    summary="Report a street's bloom status",
    description="""
    Append a bloom status report for a street.

    The street is created on its first report. Writes are rate limited per
    client address.
    """,
    dependencies=[Depends(enforce_write_rate_limit)],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid status or body"},
        429: {"model": RateLimitResponse, "description": "Too many reports from this client"},
    },
)
async def update_status(
    body: BloomStatusUpdateRequest,
    store: BloomStatusStoreDep,
) -> BloomStatusReportResponse:
    report = await store.update_status(
        street=body.street,
        status=body.status,
        neighborhood=body.neighborhood,
        latitude=body.latitude,
        longitude=body.longitude,
        tree_count=body.tree_count,
    )
    return BloomStatusReportResponse.from_report(report)
