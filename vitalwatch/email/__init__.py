"""Outbound email: providers, retry/failover delivery, and audit log.

Alert templates live in ``vitalwatch.email.rendering``.
"""

from vitalwatch.email.audit import EmailAttemptLog
from vitalwatch.email.config import EmailConfig
from vitalwatch.email.providers import (
    EmailProvider,
    MailgunProvider,
    SendGridProvider,
    SMTPProvider,
    build_providers,
)
from vitalwatch.email.schemas import (
    DeliveryAttempt,
    DeliveryResult,
    DeliveryState,
    EmailMessage,
)
from vitalwatch.email.service import EmailDeliveryService

__all__ = [
    "DeliveryAttempt",
    "DeliveryResult",
    "DeliveryState",
    "EmailAttemptLog",
    "EmailConfig",
    "EmailDeliveryService",
    "EmailMessage",
    "EmailProvider",
    "MailgunProvider",
    "SMTPProvider",
    "SendGridProvider",
    "build_providers",
]
