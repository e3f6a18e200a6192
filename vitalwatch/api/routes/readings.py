"""Reading endpoints: log a reading, list, latest, stats, delete."""

import time
from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, Query, status

from vitalwatch.alerts.access import AccessScope, check_can_view_user, resolve_subject
from vitalwatch.api.auth import get_caller
from vitalwatch.api.dependencies import get_pipeline, get_reading_repository
from vitalwatch.api.models import (
    AlertItem,
    DeletedResponse,
    ErrorResponse,
    IngestResponse,
    LatestReadingsResponse,
    ReadingCreateRequest,
    ReadingItem,
    ReadingsResponse,
    ReadingStatsResponse,
)
from vitalwatch.errors import ReadingNotFoundError, ReadingValidationError
from vitalwatch.pipeline.ingestion import MetricIngestionPipeline
from vitalwatch.readings.repository import ReadingRepository
from vitalwatch.readings.schemas import MetricReading
from vitalwatch.readings.stats import period_bounds, summarize

logger = structlog.get_logger(__name__)
router = APIRouter()

_ERRORS = {
    401: {"model": ErrorResponse, "description": "Invalid API key or caller"},
    403: {"model": ErrorResponse, "description": "Access denied"},
}


def _parse_timestamp(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as e:
        raise ReadingValidationError(f"Invalid timestamp {raw!r}") from e


@router.post(
    "/metrics",
    response_model=IngestResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_ERRORS, 422: {"model": ErrorResponse, "description": "Invalid reading"}},
    summary="Log a health metric reading",
    description=(
        "Persist a reading and evaluate it against normal ranges. The alert "
        "raised by the reading, if any, is returned alongside it."
    ),
)
async def create_reading(
    request: ReadingCreateRequest,
    caller: AccessScope = Depends(get_caller),
    pipeline: MetricIngestionPipeline = Depends(get_pipeline),
) -> IngestResponse:
    kwargs = {}
    timestamp = _parse_timestamp(request.timestamp)
    if timestamp is not None:
        kwargs["timestamp"] = timestamp

    reading = MetricReading(
        user_id=resolve_subject(caller, request.user_id),
        metric_type=request.metric_type,
        value=request.value,
        unit=request.unit,
        source=request.source,
        notes=request.notes,
        metadata=request.metadata,
        **kwargs,
    )

    result = await pipeline.ingest(reading)

    logger.info(
        "Reading logged",
        reading_id=result.reading.reading_id,
        metric_type=result.reading.metric_type,
        alert_id=result.alert.alert_id if result.alert else None,
    )
    return IngestResponse(
        reading=ReadingItem.from_reading(result.reading),
        alert=AlertItem.from_alert(result.alert) if result.alert else None,
    )


@router.get(
    "/metrics",
    response_model=ReadingsResponse,
    responses=_ERRORS,
    summary="List readings",
)
async def list_readings(
    user_id: str | None = Query(default=None, description="Patient id (defaults to caller)"),
    metric_type: str | None = Query(default=None),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    caller: AccessScope = Depends(get_caller),
    repo: ReadingRepository = Depends(get_reading_repository),
) -> ReadingsResponse:
    start_time = time.perf_counter()
    target = user_id or caller.user_id
    check_can_view_user(caller, target)

    readings = await repo.list_for_user(
        target,
        metric_type=metric_type,
        start=start_date,
        end=end_date,
        limit=limit,
    )
    latency_ms = (time.perf_counter() - start_time) * 1000
    return ReadingsResponse(
        readings=[ReadingItem.from_reading(r) for r in readings],
        total=len(readings),
        latency_ms=round(latency_ms, 2),
    )


@router.get(
    "/metrics/latest",
    response_model=LatestReadingsResponse,
    responses=_ERRORS,
    summary="Latest reading per metric type",
)
async def latest_readings(
    user_id: str | None = Query(default=None),
    caller: AccessScope = Depends(get_caller),
    repo: ReadingRepository = Depends(get_reading_repository),
) -> LatestReadingsResponse:
    target = user_id or caller.user_id
    check_can_view_user(caller, target)

    latest = await repo.get_latest_by_type(target)
    return LatestReadingsResponse(
        latest={k: ReadingItem.from_reading(v) for k, v in latest.items()},
    )


@router.get(
    "/metrics/stats",
    response_model=ReadingStatsResponse,
    responses={**_ERRORS, 422: {"model": ErrorResponse, "description": "Invalid period"}},
    summary="Windowed statistics for one metric type",
)
async def reading_stats(
    metric_type: str = Query(..., description="Metric type to summarize"),
    period: str = Query(default="7d", description="7d, 30d, or 90d"),
    user_id: str | None = Query(default=None),
    caller: AccessScope = Depends(get_caller),
    repo: ReadingRepository = Depends(get_reading_repository),
) -> ReadingStatsResponse:
    target = user_id or caller.user_id
    check_can_view_user(caller, target)

    try:
        start, end = period_bounds(period)
    except ValueError as e:
        raise ReadingValidationError(str(e)) from e

    readings = await repo.get_in_range(target, metric_type, start, end)
    return ReadingStatsResponse.from_stats(summarize(metric_type, period, readings))


@router.delete(
    "/metrics/{reading_id}",
    response_model=DeletedResponse,
    responses={**_ERRORS, 404: {"model": ErrorResponse, "description": "Reading not found"}},
    summary="Delete a reading",
)
async def delete_reading(
    reading_id: str,
    caller: AccessScope = Depends(get_caller),
    repo: ReadingRepository = Depends(get_reading_repository),
) -> DeletedResponse:
    reading = await repo.get_by_id(reading_id)
    if reading is None:
        raise ReadingNotFoundError(reading_id)
    check_can_view_user(caller, reading.user_id)

    if not await repo.delete(reading_id):
        raise ReadingNotFoundError(reading_id)

    logger.info("Reading deleted", reading_id=reading_id, by=caller.user_id)
    return DeletedResponse(id=reading_id)
