"""Stateless threshold evaluation for metric readings.

``evaluate`` checks one reading against the threshold table and returns
an ``AlertDecision`` when the value falls outside the normal range, or
None otherwise. No I/O and no state: persistence, dedup, and
notification live in the ingestion pipeline.

Severity rules:
- Scalar metrics: over max is ``medium``, escalating to ``high`` past
  ``max * high_multiplier``; under min is ``medium``, escalating to
  ``high`` below ``min * low_multiplier``.
- Blood pressure: either component over its max is ``medium``,
  escalating to ``critical`` past the configured critical limits;
  either component under its min is ``medium``. The high check wins.
"""

import logging
from collections.abc import Mapping

from vitalwatch.alerts.config import AlertConfig
from vitalwatch.alerts.schemas import AlertDecision, MetricSnapshot
from vitalwatch.alerts.thresholds import (
    DEFAULT_THRESHOLDS,
    BloodPressureThreshold,
    SimpleThreshold,
    Threshold,
    get_threshold,
)
from vitalwatch.readings.schemas import MetricReading

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG: AlertConfig | None = None


def _default_config() -> AlertConfig:
    global _DEFAULT_CONFIG
    if _DEFAULT_CONFIG is None:
        _DEFAULT_CONFIG = AlertConfig()
    return _DEFAULT_CONFIG


def _fmt(value: float) -> str:
    """Render 130.0 as ``130`` and 36.8 as ``36.8``."""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def _snapshot(reading: MetricReading, threshold: Threshold) -> MetricSnapshot:
    return MetricSnapshot(
        metric_type=reading.metric_type,
        value=reading.value,
        unit=reading.unit,
        threshold=threshold.to_dict(),
    )


def evaluate_simple(
    reading: MetricReading,
    threshold: SimpleThreshold,
    config: AlertConfig,
) -> AlertDecision | None:
    """Evaluate a scalar reading against a min/max range.

    Args:
        reading: Reading with a numeric (or ``{"value": n}``) value.
        threshold: Normal range for the metric type.
        config: Escalation multipliers.

    Returns:
        AlertDecision or None.
    """
    value = reading.numeric_value()
    if value is None:
        logger.info(
            "Skipping evaluation of incomplete %s reading %s",
            reading.metric_type, reading.reading_id,
        )
        return None

    if value > threshold.max:
        direction = "higher"
        severity = "high" if value > threshold.max * config.high_multiplier else "medium"
    elif value < threshold.min:
        direction = "lower"
        severity = "high" if value < threshold.min * config.low_multiplier else "medium"
    else:
        return None

    return AlertDecision(
        severity=severity,
        title=f"Abnormal {reading.metric_type} detected",
        message=(
            f"{reading.metric_type} reading ({_fmt(value)} {reading.unit}) "
            f"is {direction} than normal range."
        ),
        metric_snapshot=_snapshot(reading, threshold),
    )


def evaluate_blood_pressure(
    reading: MetricReading,
    threshold: BloodPressureThreshold,
    config: AlertConfig,
) -> AlertDecision | None:
    """Evaluate a systolic/diastolic pair.

    Args:
        reading: Blood pressure reading.
        threshold: Systolic and diastolic normal ranges.
        config: Critical limits for elevated readings.

    Returns:
        AlertDecision or None.
    """
    value = reading.value
    if not isinstance(value, Mapping) or value.get("systolic") is None or value.get("diastolic") is None:
        logger.info(
            "Skipping evaluation of incomplete bloodPressure reading %s",
            reading.reading_id,
        )
        return None

    systolic = value["systolic"]
    diastolic = value["diastolic"]

    if systolic > threshold.systolic.max or diastolic > threshold.diastolic.max:
        direction = "higher"
        critical = (
            systolic > config.bp_critical_systolic
            or diastolic > config.bp_critical_diastolic
        )
        severity = "critical" if critical else "medium"
    elif systolic < threshold.systolic.min or diastolic < threshold.diastolic.min:
        direction = "lower"
        severity = "medium"
    else:
        return None

    return AlertDecision(
        severity=severity,
        title="Abnormal bloodPressure detected",
        message=(
            f"Blood pressure reading ({_fmt(systolic)}/{_fmt(diastolic)} "
            f"{threshold.unit}) is {direction} than normal range."
        ),
        metric_snapshot=_snapshot(reading, threshold),
    )


def evaluate(
    reading: MetricReading,
    config: AlertConfig | None = None,
    thresholds: Mapping[str, Threshold] = DEFAULT_THRESHOLDS,
) -> AlertDecision | None:
    """Decide whether a reading warrants an alert.

    Metric types without a threshold entry always return None.

    Args:
        reading: Reading to evaluate.
        config: Escalation settings (defaults to ``AlertConfig()``).
        thresholds: Threshold table keyed by metric type.

    Returns:
        AlertDecision or None.
    """
    config = config or _default_config()

    threshold = get_threshold(reading.metric_type, thresholds)
    if threshold is None:
        return None

    if isinstance(threshold, BloodPressureThreshold):
        return evaluate_blood_pressure(reading, threshold, config)
    return evaluate_simple(reading, threshold, config)
