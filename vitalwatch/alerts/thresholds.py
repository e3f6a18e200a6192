"""Static medical threshold table.

Thresholds are configuration, not persisted entities. Metric types
absent from the table (steps, sleep, weight, calories, waterIntake,
distance) are informational and never alert.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True)
class Range:
    """Inclusive normal range; values strictly outside it are abnormal."""

    min: float
    max: float

    def to_dict(self) -> dict[str, float]:
        return {"min": self.min, "max": self.max}


@dataclass(frozen=True)
class SimpleThreshold:
    """Normal range for a scalar metric."""

    range: Range
    unit: str

    @property
    def min(self) -> float:
        return self.range.min

    @property
    def max(self) -> float:
        return self.range.max

    def to_dict(self) -> dict[str, Any]:
        return {"min": self.min, "max": self.max, "unit": self.unit}


@dataclass(frozen=True)
class BloodPressureThreshold:
    """Normal ranges for both components of a blood pressure reading."""

    systolic: Range
    diastolic: Range
    unit: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "systolic": self.systolic.to_dict(),
            "diastolic": self.diastolic.to_dict(),
            "unit": self.unit,
        }


Threshold = SimpleThreshold | BloodPressureThreshold

DEFAULT_THRESHOLDS: Mapping[str, Threshold] = MappingProxyType({
    "heartRate": SimpleThreshold(Range(60, 100), "bpm"),
    "bloodPressure": BloodPressureThreshold(
        systolic=Range(90, 140),
        diastolic=Range(60, 90),
        unit="mmHg",
    ),
    "bloodGlucose": SimpleThreshold(Range(70, 140), "mg/dL"),
    "oxygenSaturation": SimpleThreshold(Range(95, 100), "%"),
    "temperature": SimpleThreshold(Range(36.1, 37.2), "°C"),
})


def get_threshold(
    metric_type: str,
    table: Mapping[str, Threshold] = DEFAULT_THRESHOLDS,
) -> Threshold | None:
    """Look up the threshold for a metric type, or None if informational."""
    return table.get(metric_type)
