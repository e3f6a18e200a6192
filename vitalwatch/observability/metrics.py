"""
Prometheus metrics for monitoring the alerting pipeline.

Defines and exposes metrics for:
- Reading ingestion rates and latency
- Alerts created per severity
- Best-effort stage failures (alert, dispatch, gamification)
- Email delivery attempts per provider

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from vitalwatch.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)


class MetricsCollector:
    """
    Prometheus metrics collector for the vitalwatch pipeline.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_reading("heartRate", latency=0.02)
        metrics.record_alert("high")
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        self.readings_ingested = Counter(
            "vitalwatch_readings_ingested_total",
            "Total number of metric readings persisted",
            ["metric_type"],
        )

        self.ingestion_latency = Histogram(
            "vitalwatch_ingestion_latency_seconds",
            "Time from ingest() call to response",
            buckets=LATENCY_BUCKETS,
        )

        self.alerts_created = Counter(
            "vitalwatch_alerts_created_total",
            "Total alerts created",
            ["severity"],
        )

        self.alerts_suppressed = Counter(
            "vitalwatch_alerts_suppressed_total",
            "Alerts suppressed by the dedup window",
            ["severity"],
        )

        self.stage_failures = Counter(
            "vitalwatch_stage_failures_total",
            "Best-effort pipeline stage failures",
            ["stage"],  # alert, dispatch, gamification, push, email
        )

        self.email_attempts = Counter(
            "vitalwatch_email_attempts_total",
            "Email send attempts",
            ["provider", "status"],  # status: success, failed
        )

        self.ws_connections = Gauge(
            "vitalwatch_ws_connections",
            "Number of connected WebSocket clients in this process",
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_reading(self, metric_type: str, latency: float | None = None) -> None:
        """
        Record a persisted reading.

        Args:
            metric_type: Metric type of the reading
            latency: Optional end-to-end ingest latency in seconds
        """
        self.readings_ingested.labels(metric_type=metric_type).inc()
        if latency is not None:
            self.ingestion_latency.observe(latency)

    def record_alert(self, severity: str) -> None:
        self.alerts_created.labels(severity=severity).inc()

    def record_suppressed(self, severity: str) -> None:
        self.alerts_suppressed.labels(severity=severity).inc()

    def record_stage_failure(self, stage: str) -> None:
        self.stage_failures.labels(stage=stage).inc()

    def record_email_attempt(self, provider: str, success: bool) -> None:
        """
        Record one email delivery attempt.

        Args:
            provider: Provider name
            success: Whether the attempt succeeded
        """
        status = "success" if success else "failed"
        self.email_attempts.labels(provider=provider, status=status).inc()

    def set_ws_connections(self, count: int) -> None:
        self.ws_connections.set(count)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
