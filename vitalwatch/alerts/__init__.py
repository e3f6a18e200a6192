"""Alerting core: threshold evaluation, alert records, and access rules.

Components:
- evaluate: Stateless threshold evaluator (reading -> AlertDecision | None)
- DEFAULT_THRESHOLDS: Normal ranges per metric type
- Alert / AlertDecision / AlertFilter / MetricSnapshot: Alert schemas
- AlertConfig: Pydantic settings for escalation and dedup
- AccessScope: Resolved caller (user id + role)
- VALID_SEVERITIES / SEVERITY_ORDER: Severity tiers, least to most urgent

Persistence (``repository``, ``store``) and delivery (``realtime``,
``dispatcher``) are imported from their modules directly.
"""

from vitalwatch.alerts.access import AccessScope, Role
from vitalwatch.alerts.config import AlertConfig
from vitalwatch.alerts.evaluator import evaluate
from vitalwatch.alerts.schemas import (
    SEVERITY_ORDER,
    VALID_ALERT_TYPES,
    VALID_SEVERITIES,
    Alert,
    AlertDecision,
    AlertFilter,
    AlertSeverity,
    MetricSnapshot,
)
from vitalwatch.alerts.thresholds import DEFAULT_THRESHOLDS

__all__ = [
    "AccessScope",
    "Alert",
    "AlertConfig",
    "AlertDecision",
    "AlertFilter",
    "AlertSeverity",
    "DEFAULT_THRESHOLDS",
    "MetricSnapshot",
    "Role",
    "SEVERITY_ORDER",
    "VALID_ALERT_TYPES",
    "VALID_SEVERITIES",
    "evaluate",
]
