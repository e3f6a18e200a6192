"""Email delivery configuration.

Retry and timeout settings for ``EmailDeliveryService``. Provider
credentials live on the application ``Settings``.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EmailConfig(BaseSettings):
    """Configuration for email delivery."""

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_",
        case_sensitive=False,
        extra="ignore",
    )

    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Send attempts per provider before falling through",
    )
    backoff_base: float = Field(
        default=2.0,
        ge=0.0,
        description="Delay after the first failed attempt; doubles per attempt",
    )
    backoff_max: float = Field(
        default=60.0,
        ge=0.0,
        description="Upper bound on a single backoff delay in seconds",
    )
    timeout: float = Field(
        default=10.0,
        gt=0.0,
        description="Per-request timeout for HTTP and SMTP providers",
    )
