"""Data types for email delivery and its audit trail."""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


class DeliveryState(enum.Enum):
    """Lifecycle of one ``send_with_retry`` call."""

    PENDING = "pending"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class EmailMessage:
    """An outbound email: recipient, subject, and both bodies."""

    to: str
    subject: str
    html: str
    text: str = ""


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a successful send.

    Attributes:
        provider: Name of the provider that accepted the message.
        message_id: Provider-assigned message id, if any.
        attempt: 1-based attempt number on that provider.
    """

    provider: str
    message_id: str | None
    attempt: int


@dataclass
class DeliveryAttempt:
    """One audited send attempt. Rows are append-only."""

    to: str
    subject: str
    provider: str
    status: str  # success | failed
    attempt: int
    message_id: str | None = None
    error: str | None = None
    attempt_id: str = field(default_factory=lambda: f"email_{uuid.uuid4().hex[:12]}")
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.status not in ("success", "failed"):
            raise ValueError(f"Invalid attempt status {self.status!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "to": self.to,
            "subject": self.subject,
            "provider": self.provider,
            "status": self.status,
            "attempt": self.attempt,
            "message_id": self.message_id,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
        }
