"""Observability layer - logging and metrics."""

from vitalwatch.observability.logging import setup_logging
from vitalwatch.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "MetricsCollector", "get_metrics"]
