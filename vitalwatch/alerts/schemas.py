"""Schema definitions for alert records.

Maps 1:1 to the ``alerts`` database table. Each alert records an
abnormal reading (or, for non-metric alert types, an appointment,
medication, or system notice) for one subject user.

The metric snapshot is a frozen copy of the reading and threshold at
evaluation time. It is not a reference to the reading, so an alert
outlives the reading it was derived from.
"""

import copy
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

AlertSeverity = Literal["low", "medium", "high", "critical"]

# Ordered least to most urgent
SEVERITY_ORDER: tuple[str, ...] = ("low", "medium", "high", "critical")

VALID_SEVERITIES: frozenset[str] = frozenset(SEVERITY_ORDER)

AlertType = Literal["health-metric", "appointment", "medication", "system"]

VALID_ALERT_TYPES: frozenset[str] = frozenset({
    "health-metric",
    "appointment",
    "medication",
    "system",
})


def _parse_datetime(value: Any) -> datetime | None:
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


@dataclass(frozen=True)
class MetricSnapshot:
    """Reading and threshold captured when the alert was raised.

    Attributes:
        metric_type: Metric type of the triggering reading.
        value: Reading value (number or blood pressure mapping).
        unit: Reading unit.
        threshold: Threshold configuration in force at evaluation time.
    """

    metric_type: str
    value: Any
    unit: str
    threshold: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Detach from caller-owned mutable objects
        object.__setattr__(self, "value", copy.deepcopy(self.value))
        object.__setattr__(self, "threshold", copy.deepcopy(self.threshold))

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric_type": self.metric_type,
            "value": copy.deepcopy(self.value),
            "unit": self.unit,
            "threshold": copy.deepcopy(self.threshold),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MetricSnapshot":
        return cls(
            metric_type=data["metric_type"],
            value=data.get("value"),
            unit=data.get("unit", ""),
            threshold=data.get("threshold") or {},
        )


@dataclass
class Alert:
    """A persisted alert record from the alerts table.

    Attributes:
        alert_id: UUID4 identifier.
        user_id: Subject of the alert (the patient).
        severity: Urgency tier (low, medium, high, critical).
        type: Alert category.
        title: Short human-readable summary.
        message: Sentence describing the condition.
        metric_snapshot: Frozen reading/threshold copy (health-metric only).
        is_read: Whether the subject has seen the alert.
        is_acknowledged: Whether a provider has acknowledged it. Monotonic.
        acknowledged_by: User id of the first acknowledger.
        acknowledged_at: When it was first acknowledged.
        created_at: When the alert was raised.
        updated_at: Last read/acknowledge change.
    """

    user_id: str
    severity: str
    title: str
    message: str
    type: str = "health-metric"
    alert_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    metric_snapshot: MetricSnapshot | None = None
    is_read: bool = False
    is_acknowledged: bool = False
    acknowledged_by: str | None = None
    acknowledged_at: datetime | None = None
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    updated_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self) -> None:
        if self.severity not in VALID_SEVERITIES:
            raise ValueError(
                f"Invalid severity {self.severity!r}. "
                f"Must be one of: {list(SEVERITY_ORDER)}"
            )
        if self.type not in VALID_ALERT_TYPES:
            raise ValueError(
                f"Invalid type {self.type!r}. "
                f"Must be one of: {sorted(VALID_ALERT_TYPES)}"
            )

    @property
    def is_critical(self) -> bool:
        return self.severity == "critical"

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "alert_id": self.alert_id,
            "user_id": self.user_id,
            "severity": self.severity,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "metric_snapshot": (
                self.metric_snapshot.to_dict() if self.metric_snapshot else None
            ),
            "is_read": self.is_read,
            "is_acknowledged": self.is_acknowledged,
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_at": (
                self.acknowledged_at.isoformat() if self.acknowledged_at else None
            ),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Alert":
        """Create an Alert from a dictionary or database row.

        Args:
            data: Mapping with alert fields. ``metric_snapshot`` may be a
                dict or a JSON string.

        Returns:
            Alert instance.
        """
        snapshot = data.get("metric_snapshot")
        if isinstance(snapshot, str):
            snapshot = json.loads(snapshot)
        if isinstance(snapshot, dict):
            snapshot = MetricSnapshot.from_dict(snapshot)

        now = datetime.now(timezone.utc)
        return cls(
            alert_id=data.get("alert_id") or str(uuid.uuid4()),
            user_id=data["user_id"],
            severity=data["severity"],
            type=data.get("type", "health-metric"),
            title=data["title"],
            message=data["message"],
            metric_snapshot=snapshot,
            is_read=data.get("is_read", False),
            is_acknowledged=data.get("is_acknowledged", False),
            acknowledged_by=data.get("acknowledged_by"),
            acknowledged_at=_parse_datetime(data.get("acknowledged_at")),
            created_at=_parse_datetime(data.get("created_at")) or now,
            updated_at=_parse_datetime(data.get("updated_at")) or now,
        )


@dataclass(frozen=True)
class AlertDecision:
    """Evaluator output: what alert to raise for a reading."""

    severity: str
    title: str
    message: str
    metric_snapshot: MetricSnapshot

    def to_alert(self, user_id: str) -> Alert:
        """Materialize the decision as a new, unread alert for ``user_id``."""
        return Alert(
            user_id=user_id,
            severity=self.severity,
            type="health-metric",
            title=self.title,
            message=self.message,
            metric_snapshot=self.metric_snapshot,
        )


@dataclass(frozen=True)
class AlertFilter:
    """Query filter for listing alerts. None means "don't filter"."""

    user_id: str | None = None
    severity: str | None = None
    is_read: bool | None = None
    is_acknowledged: bool | None = None

    def __post_init__(self) -> None:
        if self.severity is not None and self.severity not in VALID_SEVERITIES:
            raise ValueError(
                f"Invalid severity {self.severity!r}. "
                f"Must be one of: {list(SEVERITY_ORDER)}"
            )
