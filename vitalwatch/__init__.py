"""vitalwatch - health-metric ingestion and alerting service."""

__version__ = "0.1.0"
