"""
Request and response models for the vitalwatch API.
"""

from typing import Any

from pydantic import BaseModel, Field

from vitalwatch.alerts.schemas import Alert
from vitalwatch.readings.schemas import MetricReading, ReadingStats


class ErrorResponse(BaseModel):
    """Response model for errors."""

    detail: str = Field(..., description="Error message")
    error_type: str = Field(default="error", description="Error type")


# Readings


class ReadingCreateRequest(BaseModel):
    """Request model for logging a reading."""

    metric_type: str = Field(..., description="Metric type, e.g. heartRate or bloodPressure")
    value: Any = Field(
        default=None,
        description="Number, or {systolic, diastolic} for blood pressure",
    )
    unit: str = Field(..., min_length=1, description="Measurement unit")
    user_id: str | None = Field(
        default=None,
        description="Patient to log for (providers and admins only)",
    )
    source: str = Field(default="manual", description="manual, device-integration, or simulator")
    timestamp: str | None = Field(default=None, description="ISO timestamp; defaults to now")
    notes: str | None = Field(default=None, max_length=1000)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ReadingItem(BaseModel):
    """Single reading record."""

    reading_id: str
    user_id: str
    metric_type: str
    value: Any = None
    unit: str
    source: str
    timestamp: str
    notes: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_reading(cls, reading: MetricReading) -> "ReadingItem":
        return cls(
            reading_id=reading.reading_id,
            user_id=reading.user_id,
            metric_type=reading.metric_type,
            value=reading.value,
            unit=reading.unit,
            source=reading.source,
            timestamp=reading.timestamp.isoformat(),
            notes=reading.notes,
            metadata=reading.metadata,
        )


class AlertItem(BaseModel):
    """Single alert record."""

    alert_id: str = Field(..., description="Unique alert identifier")
    user_id: str = Field(..., description="Subject user of the alert")
    severity: str = Field(..., description="Severity level: low, medium, high, critical")
    type: str = Field(..., description="Alert category")
    title: str = Field(..., description="Short human-readable summary")
    message: str = Field(..., description="Detailed alert description")
    metric_snapshot: dict[str, Any] | None = Field(
        default=None,
        description="Reading and threshold captured when the alert was raised",
    )
    is_read: bool = False
    is_acknowledged: bool = False
    acknowledged_by: str | None = None
    acknowledged_at: str | None = None
    created_at: str = Field(..., description="Alert creation timestamp (ISO format)")
    updated_at: str

    @classmethod
    def from_alert(cls, alert: Alert) -> "AlertItem":
        return cls(**alert.to_dict())


class IngestResponse(BaseModel):
    """Response model for a logged reading."""

    reading: ReadingItem
    alert: AlertItem | None = Field(
        default=None,
        description="Alert raised by this reading, if any",
    )


class ReadingsResponse(BaseModel):
    """Response model for listing readings."""

    readings: list[ReadingItem]
    total: int
    latency_ms: float


class LatestReadingsResponse(BaseModel):
    """Latest reading per metric type."""

    latest: dict[str, ReadingItem]


class ReadingStatsResponse(BaseModel):
    """Windowed statistics for one metric type."""

    metric_type: str
    period: str
    count: int
    min: float | None = None
    max: float | None = None
    avg: float | None = None
    latest: ReadingItem | None = None

    @classmethod
    def from_stats(cls, stats: ReadingStats) -> "ReadingStatsResponse":
        return cls(
            metric_type=stats.metric_type,
            period=stats.period,
            count=stats.count,
            min=stats.min,
            max=stats.max,
            avg=stats.avg,
            latest=ReadingItem.from_reading(stats.latest) if stats.latest else None,
        )


# Alerts


class AlertsResponse(BaseModel):
    """Response model for listing alerts."""

    alerts: list[AlertItem] = Field(..., description="List of alerts")
    total: int = Field(..., description="Number of alerts returned")
    latency_ms: float = Field(..., description="Processing latency in milliseconds")


class UnreadCountResponse(BaseModel):
    count: int = Field(..., ge=0, description="Unread alerts for the user")


class DeletedResponse(BaseModel):
    id: str
    deleted: bool = True


# Health


class ComponentHealth(BaseModel):
    """Health of one infrastructure dependency."""

    status: str = Field(..., description="healthy or unhealthy")
    latency_ms: float | None = None
    details: dict[str, Any] | None = None


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(
        ...,
        description="Overall service status: healthy, degraded, or unhealthy",
    )
    components: dict[str, ComponentHealth] = Field(default_factory=dict)
    email_providers: list[str] = Field(
        default_factory=list,
        description="Configured email providers in priority order",
    )
    ws_connections: int = Field(default=0, description="WebSocket clients on this process")
    version: str
