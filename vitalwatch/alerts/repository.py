"""Alert repository for CRUD operations and counter queries.

Plain asyncpg access to the ``alerts`` table. No authorization and no
dedup here: ``AlertStore`` applies access rules on top, and duplicate
suppression is a pipeline decision.
"""

import json
import logging
from typing import Any

from vitalwatch.alerts.schemas import Alert, AlertFilter
from vitalwatch.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS alerts (
    alert_id         TEXT PRIMARY KEY,
    user_id          TEXT NOT NULL,
    severity         TEXT NOT NULL,
    type             TEXT NOT NULL,
    title            TEXT NOT NULL,
    message          TEXT NOT NULL,
    metric_snapshot  JSONB,
    is_read          BOOLEAN NOT NULL DEFAULT FALSE,
    is_acknowledged  BOOLEAN NOT NULL DEFAULT FALSE,
    acknowledged_by  TEXT,
    acknowledged_at  TIMESTAMPTZ,
    created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_alerts_user_read_severity
    ON alerts(user_id, is_read, severity);
CREATE INDEX IF NOT EXISTS idx_alerts_created_at
    ON alerts(created_at DESC);
"""


class AlertRepository:
    """Repository for alert persistence and querying."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def ensure_table(self) -> None:
        """Create the table and indexes if they don't exist."""
        await self._db.execute(_CREATE_TABLE_SQL)

    async def create(self, alert: Alert) -> Alert:
        """Insert a new alert.

        Args:
            alert: Alert to persist.

        Returns:
            The created Alert as stored.
        """
        sql = """
            INSERT INTO alerts (
                alert_id, user_id, severity, type, title, message,
                metric_snapshot, is_read, is_acknowledged,
                acknowledged_by, acknowledged_at, created_at, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql,
            alert.alert_id,
            alert.user_id,
            alert.severity,
            alert.type,
            alert.title,
            alert.message,
            alert.metric_snapshot.to_dict() if alert.metric_snapshot else None,
            alert.is_read,
            alert.is_acknowledged,
            alert.acknowledged_by,
            alert.acknowledged_at,
            alert.created_at,
            alert.updated_at,
        )
        return _row_to_alert(row)

    async def get_by_id(self, alert_id: str) -> Alert | None:
        sql = "SELECT * FROM alerts WHERE alert_id = $1"
        row = await self._db.fetchrow(sql, alert_id)
        if row is None:
            return None
        return _row_to_alert(row)

    async def list_alerts(
        self,
        alert_filter: AlertFilter,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Alert]:
        """List alerts matching a filter, newest first.

        Uses dynamic SQL with an incremental parameter index.

        Args:
            alert_filter: Pre-scoped filter; None fields are not applied.
            limit: Maximum alerts to return.
            offset: Offset for pagination.

        Returns:
            Alerts ordered by created_at descending.
        """
        conditions: list[str] = []
        params: list[Any] = []
        param_idx = 1

        for column in ("user_id", "severity", "is_read", "is_acknowledged"):
            value = getattr(alert_filter, column)
            if value is not None:
                conditions.append(f"{column} = ${param_idx}")
                params.append(value)
                param_idx += 1

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        sql = f"""
            SELECT * FROM alerts
            {where_clause}
            ORDER BY created_at DESC
            LIMIT ${param_idx} OFFSET ${param_idx + 1}
        """
        params.extend([limit, offset])

        rows = await self._db.fetch(sql, *params)
        return [_row_to_alert(row) for row in rows]

    async def count_unread(self, user_id: str) -> int:
        """Count alerts for ``user_id`` that have not been read."""
        sql = "SELECT COUNT(*) FROM alerts WHERE user_id = $1 AND is_read = FALSE"
        count = await self._db.fetchval(sql, user_id)
        return count or 0

    async def get_critical_unacknowledged(self, user_id: str) -> list[Alert]:
        """Critical alerts for a patient that no provider has acknowledged."""
        sql = """
            SELECT * FROM alerts
            WHERE user_id = $1 AND severity = 'critical' AND is_acknowledged = FALSE
            ORDER BY created_at DESC
        """
        rows = await self._db.fetch(sql, user_id)
        return [_row_to_alert(row) for row in rows]

    async def mark_read(self, alert_id: str) -> Alert | None:
        """Set ``is_read``. Re-marking leaves the row unchanged.

        Returns:
            The alert after the update, or None if it does not exist.
        """
        sql = """
            UPDATE alerts SET
                is_read = TRUE,
                updated_at = CASE WHEN is_read THEN updated_at ELSE NOW() END
            WHERE alert_id = $1
            RETURNING *
        """
        row = await self._db.fetchrow(sql, alert_id)
        if row is None:
            return None
        return _row_to_alert(row)

    async def acknowledge(self, alert_id: str, by_user_id: str) -> Alert | None:
        """Set ``is_acknowledged``, keeping the first acknowledger and time.

        Returns:
            The alert after the update, or None if it does not exist.
        """
        sql = """
            UPDATE alerts SET
                is_acknowledged = TRUE,
                acknowledged_by = CASE WHEN is_acknowledged THEN acknowledged_by ELSE $2 END,
                acknowledged_at = CASE WHEN is_acknowledged THEN acknowledged_at ELSE NOW() END,
                updated_at = CASE WHEN is_acknowledged THEN updated_at ELSE NOW() END
            WHERE alert_id = $1
            RETURNING *
        """
        row = await self._db.fetchrow(sql, alert_id, by_user_id)
        if row is None:
            return None
        return _row_to_alert(row)

    async def delete(self, alert_id: str) -> bool:
        """Hard delete an alert.

        Returns:
            True if a row was removed.
        """
        sql = "DELETE FROM alerts WHERE alert_id = $1 RETURNING alert_id"
        result = await self._db.fetchval(sql, alert_id)
        return result is not None


def _row_to_alert(row: Any) -> Alert:
    """Convert an asyncpg Record to an Alert."""
    data = dict(row)
    snapshot = data.get("metric_snapshot")
    if isinstance(snapshot, str):
        data["metric_snapshot"] = json.loads(snapshot)
    return Alert.from_dict(data)
