"""Schema definitions for health metric readings.

Maps 1:1 to the ``metric_readings`` table. A reading is a single
timestamped observation for one user. Blood pressure is the only
compound metric; its value is ``{"systolic": n, "diastolic": n}``.
Every other metric carries a plain number (a ``{"value": n}`` wrapper
from device integrations is accepted and unwrapped on read).
"""

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from vitalwatch.errors import ReadingValidationError

MetricType = Literal[
    "heartRate",
    "bloodPressure",
    "bloodGlucose",
    "oxygenSaturation",
    "temperature",
    "steps",
    "sleep",
    "weight",
    "calories",
    "waterIntake",
    "distance",
]

VALID_METRIC_TYPES: frozenset[str] = frozenset({
    "heartRate",
    "bloodPressure",
    "bloodGlucose",
    "oxygenSaturation",
    "temperature",
    "steps",
    "sleep",
    "weight",
    "calories",
    "waterIntake",
    "distance",
})

COMPOUND_METRIC_TYPES: frozenset[str] = frozenset({"bloodPressure"})

ReadingSource = Literal["manual", "device-integration", "simulator"]

VALID_SOURCES: frozenset[str] = frozenset({
    "manual",
    "device-integration",
    "simulator",
})

ReadingValue = float | dict[str, float] | None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_value(metric_type: str, value: Any) -> None:
    """Check that ``value`` has the shape ``metric_type`` requires.

    ``None`` is accepted: an incomplete reading is stored and skipped by
    the evaluator.
    """
    if value is None:
        return

    if metric_type in COMPOUND_METRIC_TYPES:
        if not isinstance(value, Mapping):
            raise ReadingValidationError(
                f"{metric_type} value must be an object with systolic and diastolic"
            )
        missing = {"systolic", "diastolic"} - set(value)
        if missing:
            raise ReadingValidationError(
                f"{metric_type} value is missing {sorted(missing)}"
            )
        for key in ("systolic", "diastolic"):
            if not _is_number(value[key]):
                raise ReadingValidationError(
                    f"{metric_type} {key} must be a number, got {value[key]!r}"
                )
        return

    if isinstance(value, Mapping):
        if set(value) != {"value"} or not _is_number(value["value"]):
            raise ReadingValidationError(
                f"{metric_type} value must be a number"
            )
        return

    if not _is_number(value):
        raise ReadingValidationError(
            f"{metric_type} value must be a number, got {value!r}"
        )


@dataclass
class MetricReading:
    """A persisted health observation from the metric_readings table.

    Attributes:
        reading_id: UUID4 identifier.
        user_id: Owner of the reading (the patient).
        metric_type: One of ``VALID_METRIC_TYPES``.
        value: Number, ``{"systolic", "diastolic"}`` for blood pressure,
            or None for an incomplete reading.
        unit: Measurement unit as reported by the source.
        source: How the reading was produced.
        timestamp: When the observation was taken.
        notes: Optional free text from the patient.
        metadata: Device details (device id, accuracy, location).
        created_at: When the row was written.
    """

    user_id: str
    metric_type: str
    value: ReadingValue
    unit: str
    source: str = "manual"
    reading_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    notes: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self) -> None:
        if not self.user_id:
            raise ReadingValidationError("user_id is required")
        if self.metric_type not in VALID_METRIC_TYPES:
            raise ReadingValidationError(
                f"Invalid metric_type {self.metric_type!r}. "
                f"Must be one of: {sorted(VALID_METRIC_TYPES)}"
            )
        if self.source not in VALID_SOURCES:
            raise ReadingValidationError(
                f"Invalid source {self.source!r}. "
                f"Must be one of: {sorted(VALID_SOURCES)}"
            )
        if not self.unit:
            raise ReadingValidationError("unit is required")
        _validate_value(self.metric_type, self.value)

    @property
    def is_compound(self) -> bool:
        return self.metric_type in COMPOUND_METRIC_TYPES

    def numeric_value(self) -> float | None:
        """Return the scalar value, unwrapping ``{"value": n}``.

        Returns None for compound or missing values.
        """
        if self.value is None or self.is_compound:
            return None
        if isinstance(self.value, Mapping):
            return self.value.get("value")
        return self.value

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "reading_id": self.reading_id,
            "user_id": self.user_id,
            "metric_type": self.metric_type,
            "value": self.value,
            "unit": self.unit,
            "source": self.source,
            "timestamp": self.timestamp.isoformat(),
            "notes": self.notes,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class ReadingStats:
    """Summary statistics over a window of scalar readings."""

    metric_type: str
    period: str
    count: int
    min: float | None = None
    max: float | None = None
    avg: float | None = None
    latest: MetricReading | None = None
