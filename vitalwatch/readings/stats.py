"""Windowed summary statistics for dashboard charts."""

from datetime import datetime, timedelta, timezone

from vitalwatch.readings.schemas import MetricReading, ReadingStats

PERIODS: dict[str, timedelta] = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
}


def period_bounds(period: str, now: datetime | None = None) -> tuple[datetime, datetime]:
    """Resolve a period label (``7d``, ``30d``, ``90d``) to ``(start, end)``.

    Raises:
        ValueError: If the label is unknown.
    """
    if period not in PERIODS:
        raise ValueError(
            f"Invalid period {period!r}. Must be one of: {sorted(PERIODS)}"
        )
    end = now or datetime.now(timezone.utc)
    return end - PERIODS[period], end


def summarize(
    metric_type: str,
    period: str,
    readings: list[MetricReading],
) -> ReadingStats:
    """Compute count/min/max/avg over scalar values.

    Compound and missing values are excluded from the numeric summary
    but the latest reading is reported regardless of shape.

    Args:
        metric_type: Metric type the readings belong to.
        period: Period label echoed back in the result.
        readings: Readings ordered oldest first.
    """
    values = [
        v for v in (r.numeric_value() for r in readings) if v is not None
    ]
    latest = readings[-1] if readings else None

    if not values:
        return ReadingStats(metric_type=metric_type, period=period, count=0, latest=latest)

    return ReadingStats(
        metric_type=metric_type,
        period=period,
        count=len(values),
        min=min(values),
        max=max(values),
        avg=sum(values) / len(values),
        latest=latest,
    )
