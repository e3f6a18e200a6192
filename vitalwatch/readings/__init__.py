"""Health metric readings.

Components:
- MetricReading: Dataclass mapping to the metric_readings table
- ReadingRepository: Persistence and dashboard queries
- summarize / period_bounds: Windowed statistics
- VALID_METRIC_TYPES / VALID_SOURCES: Frozensets for runtime validation
"""

from vitalwatch.readings.repository import ReadingRepository
from vitalwatch.readings.schemas import (
    COMPOUND_METRIC_TYPES,
    VALID_METRIC_TYPES,
    VALID_SOURCES,
    MetricReading,
    MetricType,
    ReadingStats,
)
from vitalwatch.readings.stats import period_bounds, summarize

__all__ = [
    "COMPOUND_METRIC_TYPES",
    "MetricReading",
    "MetricType",
    "ReadingRepository",
    "ReadingStats",
    "VALID_METRIC_TYPES",
    "VALID_SOURCES",
    "period_bounds",
    "summarize",
]
