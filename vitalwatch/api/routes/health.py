"""
Health check endpoint reporting database and Redis status.
"""

import time

import structlog
from fastapi import APIRouter, Depends

from vitalwatch import __version__
from vitalwatch.api.dependencies import (
    get_broadcaster,
    get_database,
    get_email_service,
    get_redis_client,
)
from vitalwatch.api.models import ComponentHealth, HealthResponse
from vitalwatch.email.service import EmailDeliveryService
from vitalwatch.storage.database import Database

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _check_database(db: Database) -> ComponentHealth:
    """Check database connectivity and measure latency."""
    start = time.perf_counter()
    try:
        healthy = await db.health_check()
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="healthy" if healthy else "unhealthy",
            latency_ms=round(latency_ms, 2),
        )
    except Exception as e:
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="unhealthy",
            latency_ms=round(latency_ms, 2),
            details={"error": str(e)},
        )


async def _check_redis(redis_client) -> ComponentHealth:
    """Check Redis connectivity and measure latency."""
    start = time.perf_counter()
    try:
        await redis_client.ping()
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(status="healthy", latency_ms=round(latency_ms, 2))
    except Exception as e:
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="unhealthy",
            latency_ms=round(latency_ms, 2),
            details={"error": str(e)},
        )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Check the health of the service and its dependencies.",
)
async def health_check(
    db: Database = Depends(get_database),
    redis_client=Depends(get_redis_client),
    email_service: EmailDeliveryService = Depends(get_email_service),
) -> HealthResponse:
    """
    Status logic:
    - unhealthy: database is down (readings cannot be persisted)
    - degraded: Redis is down (no cross-process push, no dedup)
    - healthy: all components operational
    """
    components = {
        "database": await _check_database(db),
        "redis": await _check_redis(redis_client),
    }

    if components["database"].status == "unhealthy":
        status = "unhealthy"
    elif components["redis"].status == "unhealthy":
        status = "degraded"
    else:
        status = "healthy"

    if status != "healthy":
        logger.warning("Health check degraded", status=status)

    return HealthResponse(
        status=status,
        components=components,
        email_providers=[p.name for p in email_service.providers],
        ws_connections=get_broadcaster().active_connections,
        version=__version__,
    )
