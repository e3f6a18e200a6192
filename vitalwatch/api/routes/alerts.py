"""Alert endpoints for listing, reading, acknowledging, and deleting alerts."""

import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from vitalwatch.alerts.access import AccessScope
from vitalwatch.alerts.schemas import SEVERITY_ORDER, VALID_SEVERITIES, AlertFilter
from vitalwatch.alerts.store import AlertStore
from vitalwatch.api.auth import get_caller
from vitalwatch.api.dependencies import get_alert_store
from vitalwatch.api.models import (
    AlertItem,
    AlertsResponse,
    DeletedResponse,
    ErrorResponse,
    UnreadCountResponse,
)

logger = structlog.get_logger(__name__)
router = APIRouter()

_ERRORS = {
    401: {"model": ErrorResponse, "description": "Invalid API key or caller"},
    403: {"model": ErrorResponse, "description": "Access denied"},
    404: {"model": ErrorResponse, "description": "Alert not found"},
}


@router.get(
    "/alerts",
    response_model=AlertsResponse,
    responses={**_ERRORS, 422: {"model": ErrorResponse, "description": "Invalid filter parameter"}},
    summary="List alerts",
    description=(
        "List alerts newest first. Patients always see their own alerts; "
        "providers may pass user_id to see a patient's alerts."
    ),
)
async def list_alerts(
    user_id: str | None = Query(default=None, description="Patient id (providers and admins)"),
    severity: str | None = Query(default=None, description="low, medium, high, or critical"),
    is_read: bool | None = Query(default=None),
    is_acknowledged: bool | None = Query(default=None),
    critical_only: bool = Query(
        default=False,
        description="Only critical alerts still awaiting acknowledgement",
    ),
    limit: int = Query(default=50, ge=1, le=500, description="Maximum alerts to return"),
    offset: int = Query(default=0, ge=0, description="Offset for pagination"),
    caller: AccessScope = Depends(get_caller),
    store: AlertStore = Depends(get_alert_store),
) -> AlertsResponse:
    start_time = time.perf_counter()

    if severity and severity not in VALID_SEVERITIES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=(
                f"Invalid severity {severity!r}. "
                f"Must be one of: {list(SEVERITY_ORDER)}"
            ),
        )

    if critical_only:
        alerts = await store.get_critical_alerts(caller, user_id)
    else:
        alert_filter = AlertFilter(
            user_id=user_id,
            severity=severity,
            is_read=is_read,
            is_acknowledged=is_acknowledged,
        )
        alerts = await store.list_alerts(caller, alert_filter, limit=limit, offset=offset)

    latency_ms = (time.perf_counter() - start_time) * 1000
    logger.info(
        "Alerts listed",
        total=len(alerts),
        severity=severity,
        latency_ms=round(latency_ms, 2),
    )
    return AlertsResponse(
        alerts=[AlertItem.from_alert(a) for a in alerts],
        total=len(alerts),
        latency_ms=round(latency_ms, 2),
    )


@router.get(
    "/alerts/unread-count",
    response_model=UnreadCountResponse,
    responses=_ERRORS,
    summary="Unread alert count",
)
async def unread_count(
    user_id: str | None = Query(default=None),
    caller: AccessScope = Depends(get_caller),
    store: AlertStore = Depends(get_alert_store),
) -> UnreadCountResponse:
    count = await store.get_unread_count(caller, user_id)
    return UnreadCountResponse(count=count)


@router.patch(
    "/alerts/{alert_id}/read",
    response_model=AlertItem,
    responses=_ERRORS,
    summary="Mark an alert as read",
)
async def mark_read(
    alert_id: str,
    caller: AccessScope = Depends(get_caller),
    store: AlertStore = Depends(get_alert_store),
) -> AlertItem:
    alert = await store.mark_read(caller, alert_id)
    return AlertItem.from_alert(alert)


@router.post(
    "/alerts/{alert_id}/acknowledge",
    response_model=AlertItem,
    responses=_ERRORS,
    summary="Acknowledge an alert",
    description="Healthcare providers and admins only. Repeat calls are no-ops.",
)
async def acknowledge(
    alert_id: str,
    caller: AccessScope = Depends(get_caller),
    store: AlertStore = Depends(get_alert_store),
) -> AlertItem:
    alert = await store.acknowledge(caller, alert_id)
    logger.info("Alert acknowledged", alert_id=alert_id, by=alert.acknowledged_by)
    return AlertItem.from_alert(alert)


@router.delete(
    "/alerts/{alert_id}",
    response_model=DeletedResponse,
    responses=_ERRORS,
    summary="Delete an alert",
)
async def delete_alert(
    alert_id: str,
    caller: AccessScope = Depends(get_caller),
    store: AlertStore = Depends(get_alert_store),
) -> DeletedResponse:
    await store.delete(caller, alert_id)
    return DeletedResponse(id=alert_id)
