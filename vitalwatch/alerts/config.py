"""Alert evaluation configuration.

Controls the severity-escalation heuristics used by the threshold
evaluator and the optional duplicate-suppression window. All settings
can be overridden via ``ALERTS_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AlertConfig(BaseSettings):
    """Configuration for alert generation."""

    model_config = SettingsConfigDict(
        env_prefix="ALERTS_",
        case_sensitive=False,
        extra="ignore",
    )

    # Simple metrics: escalate from medium to high past these multiples
    high_multiplier: float = Field(
        default=1.2,
        ge=1.0,
        description="value > max * high_multiplier escalates to high",
    )
    low_multiplier: float = Field(
        default=0.8,
        gt=0.0,
        le=1.0,
        description="value < min * low_multiplier escalates to high",
    )

    # Blood pressure: readings over max escalate to critical past these
    bp_critical_systolic: float = Field(
        default=160.0,
        description="Systolic above which an elevated reading is critical",
    )
    bp_critical_diastolic: float = Field(
        default=100.0,
        description="Diastolic above which an elevated reading is critical",
    )

    # Duplicate suppression per (user_id, metric_type, severity); 0 disables
    dedup_window_minutes: int = Field(
        default=0,
        ge=0,
        le=1440,
        description="Minutes to suppress repeat alerts for the same condition (0 = off)",
    )
