"""Alert store: the read/update surface dashboards call.

Wraps ``AlertRepository`` with the caller's ``AccessScope``. Not-found
is checked before access, so a missing id is always ``AlertNotFoundError``
and an existing id outside the caller's rights is ``AccessDeniedError``.
"""

import logging

from vitalwatch.alerts.access import (
    AccessScope,
    check_can_acknowledge,
    check_can_delete,
    check_can_mark_read,
    check_can_view_user,
    scope_alert_filter,
)
from vitalwatch.alerts.repository import AlertRepository
from vitalwatch.alerts.schemas import Alert, AlertFilter
from vitalwatch.errors import AlertNotFoundError

logger = logging.getLogger(__name__)


class AlertStore:
    """Authorization-scoped alert operations."""

    def __init__(self, repository: AlertRepository) -> None:
        self._repo = repository

    async def create(self, alert: Alert) -> Alert:
        """Persist a new alert. Internal callers only; never deduplicates."""
        created = await self._repo.create(alert)
        logger.info(
            "Alert %s created for user %s (%s)",
            created.alert_id, created.user_id, created.severity,
        )
        return created

    async def list_alerts(
        self,
        scope: AccessScope,
        alert_filter: AlertFilter | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Alert]:
        """List alerts visible to the caller, newest first."""
        scoped = scope_alert_filter(scope, alert_filter or AlertFilter())
        return await self._repo.list_alerts(scoped, limit=limit, offset=offset)

    async def get_unread_count(self, scope: AccessScope, user_id: str | None = None) -> int:
        """Unread alerts for ``user_id`` (defaults to the caller)."""
        target = user_id or scope.user_id
        check_can_view_user(scope, target)
        return await self._repo.count_unread(target)

    async def get_critical_alerts(self, scope: AccessScope, user_id: str | None = None) -> list[Alert]:
        """Critical alerts for ``user_id`` still awaiting acknowledgement."""
        target = user_id or scope.user_id
        check_can_view_user(scope, target)
        return await self._repo.get_critical_unacknowledged(target)

    async def _require(self, alert_id: str) -> Alert:
        alert = await self._repo.get_by_id(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        return alert

    async def mark_read(self, scope: AccessScope, alert_id: str) -> Alert:
        """Mark an alert read. Already-read alerts are returned unchanged."""
        alert = await self._require(alert_id)
        check_can_mark_read(scope, alert)
        if alert.is_read:
            return alert

        updated = await self._repo.mark_read(alert_id)
        if updated is None:
            # Deleted between the lookup and the update
            raise AlertNotFoundError(alert_id)
        return updated

    async def acknowledge(self, scope: AccessScope, alert_id: str) -> Alert:
        """Acknowledge an alert as the caller. Idempotent."""
        alert = await self._require(alert_id)
        check_can_acknowledge(scope, alert)
        if alert.is_acknowledged:
            return alert

        updated = await self._repo.acknowledge(alert_id, scope.user_id)
        if updated is None:
            raise AlertNotFoundError(alert_id)
        logger.info("Alert %s acknowledged by %s", alert_id, scope.user_id)
        return updated

    async def delete(self, scope: AccessScope, alert_id: str) -> None:
        """Hard delete an alert (owner or admin)."""
        alert = await self._require(alert_id)
        check_can_delete(scope, alert)
        if not await self._repo.delete(alert_id):
            raise AlertNotFoundError(alert_id)
        logger.info("Alert %s deleted by %s", alert_id, scope.user_id)
