"""Notification dispatcher fanning a new alert out to the subject user.

Three side effects per alert, each isolated from the others:

1. Real-time push of ``alert:new`` to the user's private room.
2. Unread-count hint: the count is re-read from the alert store (there is
   no separate counter) and pushed as ``alert:unread-count``.
3. Email for ``high`` and ``critical`` alerts, through
   ``EmailDeliveryService.send_with_retry``.

A failure in one step is logged and counted, never raised, and never
stops the remaining steps. Notification failures never affect the
already-persisted alert.
"""

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from vitalwatch.alerts.realtime import RealtimePort
from vitalwatch.alerts.repository import AlertRepository
from vitalwatch.alerts.schemas import Alert
from vitalwatch.email.rendering import render_alert_email
from vitalwatch.email.service import EmailDeliveryService
from vitalwatch.observability.metrics import get_metrics
from vitalwatch.users.directory import SubjectUser

logger = logging.getLogger(__name__)

EVENT_ALERT_NEW = "alert:new"
EVENT_UNREAD_COUNT = "alert:unread-count"


class NotificationConfig(BaseSettings):
    """Configuration for notification dispatch."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        case_sensitive=False,
        extra="ignore",
    )

    push_enabled: bool = Field(
        default=True,
        description="Push alert:new and unread-count events over WebSocket",
    )
    email_enabled: bool = Field(
        default=True,
        description="Send alert emails for qualifying severities",
    )
    email_severities: list[str] = Field(
        default=["high", "critical"],
        description="Severities that trigger an alert email",
    )


class NotificationDispatcher:
    """Delivers a created alert to the subject user.

    Stateless apart from its collaborators; safe to share across
    concurrent ingestions.
    """

    def __init__(
        self,
        realtime: RealtimePort | None,
        alert_repository: AlertRepository,
        email_service: EmailDeliveryService | None = None,
        config: NotificationConfig | None = None,
        dashboard_url: str = "http://localhost:5173/dashboard",
    ) -> None:
        self._realtime = realtime
        self._alerts = alert_repository
        self._email = email_service
        self._config = config or NotificationConfig()
        self._dashboard_url = dashboard_url

    def wants_email(self, alert: Alert) -> bool:
        return (
            self._config.email_enabled
            and self._email is not None
            and self._email.enabled
            and alert.severity in self._config.email_severities
        )

    async def dispatch(self, alert: Alert, subject_user: SubjectUser) -> list[tuple[str, bool]]:
        """Run every notification step for ``alert``.

        Args:
            alert: The persisted alert.
            subject_user: The user the alert is about.

        Returns:
            List of (step, success) tuples for the steps that ran.
        """
        results: list[tuple[str, bool]] = []

        if self._realtime is not None and self._config.push_enabled:
            results.append(("push", await self._push_alert(alert)))
            results.append(("unread_count", await self._push_unread_count(alert.user_id)))

        if self.wants_email(alert):
            results.append(("email", await self._send_email(alert, subject_user)))

        self._record_delivery(alert, results)
        return results

    async def _push_alert(self, alert: Alert) -> bool:
        try:
            await self._realtime.push_to_user(
                alert.user_id, EVENT_ALERT_NEW, {"alert": alert.to_dict()},
            )
            return True
        except Exception as e:
            logger.warning("Real-time push failed for alert %s: %s", alert.alert_id, e)
            get_metrics().record_stage_failure("push")
            return False

    async def _push_unread_count(self, user_id: str) -> bool:
        try:
            count = await self._alerts.count_unread(user_id)
            await self._realtime.push_to_user(
                user_id, EVENT_UNREAD_COUNT, {"count": count},
            )
            return True
        except Exception as e:
            logger.warning("Unread-count push failed for user %s: %s", user_id, e)
            get_metrics().record_stage_failure("push")
            return False

    async def _send_email(self, alert: Alert, subject_user: SubjectUser) -> bool:
        if not subject_user.email:
            logger.info(
                "User %s has no email address, skipping email for alert %s",
                subject_user.user_id, alert.alert_id,
            )
            return False

        try:
            message = render_alert_email(alert, subject_user, self._dashboard_url)
            result = await self._email.send_with_retry(message)
        except Exception as e:
            logger.error("Alert email failed for alert %s: %s", alert.alert_id, e)
            get_metrics().record_stage_failure("email")
            return False

        logger.info(
            "Alert email for %s sent via %s (message_id=%s)",
            alert.alert_id, result.provider, result.message_id,
        )
        return True

    def _record_delivery(self, alert: Alert, results: list[tuple[str, bool]]) -> None:
        failures = [name for name, ok in results if not ok]
        if failures:
            logger.warning(
                "Alert %s (%s) partial delivery: failed=%s",
                alert.alert_id, alert.severity, failures,
            )
        else:
            logger.debug(
                "Alert %s delivered: %s",
                alert.alert_id, [name for name, _ in results],
            )
