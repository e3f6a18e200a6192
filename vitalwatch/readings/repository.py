"""Reading repository for persistence and dashboard queries.

Follows the AlertRepository pattern with asyncpg. Readings are immutable
once written; the only mutation is a hard delete by the owner.
"""

import json
import logging
from datetime import datetime
from typing import Any

from vitalwatch.readings.schemas import MetricReading
from vitalwatch.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS metric_readings (
    reading_id   TEXT PRIMARY KEY,
    user_id      TEXT NOT NULL,
    metric_type  TEXT NOT NULL,
    value        JSONB,
    unit         TEXT NOT NULL,
    source       TEXT NOT NULL DEFAULT 'manual',
    timestamp    TIMESTAMPTZ NOT NULL,
    notes        TEXT,
    metadata     JSONB NOT NULL DEFAULT '{}',
    created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_readings_user_type_ts
    ON metric_readings(user_id, metric_type, timestamp DESC);
CREATE INDEX IF NOT EXISTS idx_readings_timestamp
    ON metric_readings(timestamp DESC);
"""


class ReadingRepository:
    """Repository for metric readings stored in ``metric_readings``."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def ensure_table(self) -> None:
        """Create the table and indexes if they don't exist."""
        await self._db.execute(_CREATE_TABLE_SQL)

    async def create(self, reading: MetricReading) -> MetricReading:
        """Insert a new reading.

        Args:
            reading: Validated reading to persist.

        Returns:
            The stored reading as read back from the database.
        """
        sql = """
            INSERT INTO metric_readings (
                reading_id, user_id, metric_type, value, unit,
                source, timestamp, notes, metadata, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql,
            reading.reading_id,
            reading.user_id,
            reading.metric_type,
            reading.value,
            reading.unit,
            reading.source,
            reading.timestamp,
            reading.notes,
            reading.metadata,
            reading.created_at,
        )
        return _row_to_reading(row)

    async def get_by_id(self, reading_id: str) -> MetricReading | None:
        sql = "SELECT * FROM metric_readings WHERE reading_id = $1"
        row = await self._db.fetchrow(sql, reading_id)
        if row is None:
            return None
        return _row_to_reading(row)

    async def list_for_user(
        self,
        user_id: str,
        *,
        metric_type: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 100,
    ) -> list[MetricReading]:
        """List a user's readings, newest first.

        Args:
            user_id: Owner of the readings.
            metric_type: Optional metric type filter.
            start: Inclusive lower bound on ``timestamp``.
            end: Inclusive upper bound on ``timestamp``.
            limit: Maximum rows to return.

        Returns:
            Readings ordered by timestamp descending.
        """
        conditions = ["user_id = $1"]
        params: list[Any] = [user_id]
        param_idx = 2

        if metric_type is not None:
            conditions.append(f"metric_type = ${param_idx}")
            params.append(metric_type)
            param_idx += 1

        if start is not None:
            conditions.append(f"timestamp >= ${param_idx}")
            params.append(start)
            param_idx += 1

        if end is not None:
            conditions.append(f"timestamp <= ${param_idx}")
            params.append(end)
            param_idx += 1

        sql = f"""
            SELECT * FROM metric_readings
            WHERE {" AND ".join(conditions)}
            ORDER BY timestamp DESC
            LIMIT ${param_idx}
        """
        params.append(limit)

        rows = await self._db.fetch(sql, *params)
        return [_row_to_reading(row) for row in rows]

    async def get_latest_by_type(self, user_id: str) -> dict[str, MetricReading]:
        """Return the most recent reading for each metric type the user has logged."""
        sql = """
            SELECT DISTINCT ON (metric_type) *
            FROM metric_readings
            WHERE user_id = $1
            ORDER BY metric_type, timestamp DESC
        """
        rows = await self._db.fetch(sql, user_id)
        latest = [_row_to_reading(row) for row in rows]
        return {r.metric_type: r for r in latest}

    async def get_in_range(
        self,
        user_id: str,
        metric_type: str,
        start: datetime,
        end: datetime,
    ) -> list[MetricReading]:
        """Readings of one type inside ``[start, end]``, oldest first."""
        sql = """
            SELECT * FROM metric_readings
            WHERE user_id = $1 AND metric_type = $2
              AND timestamp >= $3 AND timestamp <= $4
            ORDER BY timestamp ASC
        """
        rows = await self._db.fetch(sql, user_id, metric_type, start, end)
        return [_row_to_reading(row) for row in rows]

    async def delete(self, reading_id: str) -> bool:
        """Hard delete a reading.

        Returns:
            True if a row was removed.
        """
        sql = "DELETE FROM metric_readings WHERE reading_id = $1 RETURNING reading_id"
        result = await self._db.fetchval(sql, reading_id)
        return result is not None


def _decode_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


def _row_to_reading(row: Any) -> MetricReading:
    """Convert an asyncpg Record to a MetricReading."""
    return MetricReading(
        reading_id=row["reading_id"],
        user_id=row["user_id"],
        metric_type=row["metric_type"],
        value=_decode_json(row["value"]),
        unit=row["unit"],
        source=row["source"],
        timestamp=row["timestamp"],
        notes=row.get("notes"),
        metadata=_decode_json(row.get("metadata")) or {},
        created_at=row["created_at"],
    )
