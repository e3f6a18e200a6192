"""Persistence for ``user_stats``."""

import logging
from typing import Any

import asyncpg

from vitalwatch.gamification.schemas import UserStats
from vitalwatch.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS user_stats (
    user_id               TEXT PRIMARY KEY,
    total_points          INTEGER NOT NULL DEFAULT 0,
    level                 INTEGER NOT NULL DEFAULT 1,
    total_metrics_logged  INTEGER NOT NULL DEFAULT 0,
    current_streak        INTEGER NOT NULL DEFAULT 0,
    longest_streak        INTEGER NOT NULL DEFAULT 0,
    last_activity_date    DATE,
    updated_at            TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


class UserStatsRepository:
    """Repository for per-user gamification stats."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def ensure_table(self) -> None:
        await self._db.execute(_CREATE_TABLE_SQL)

    async def get(self, user_id: str) -> UserStats | None:
        row = await self._db.fetchrow(
            "SELECT * FROM user_stats WHERE user_id = $1", user_id,
        )
        if row is None:
            return None
        return _row_to_stats(row)

    async def lock(self, conn: asyncpg.Connection, user_id: str) -> UserStats:
        """Load (creating if needed) and row-lock stats inside a transaction."""
        await conn.execute(
            "INSERT INTO user_stats (user_id) VALUES ($1) ON CONFLICT (user_id) DO NOTHING",
            user_id,
        )
        row = await conn.fetchrow(
            "SELECT * FROM user_stats WHERE user_id = $1 FOR UPDATE", user_id,
        )
        return _row_to_stats(row)

    async def save(self, conn: asyncpg.Connection, stats: UserStats) -> None:
        sql = """
            UPDATE user_stats SET
                total_points = $2,
                level = $3,
                total_metrics_logged = $4,
                current_streak = $5,
                longest_streak = $6,
                last_activity_date = $7,
                updated_at = NOW()
            WHERE user_id = $1
        """
        await conn.execute(
            sql,
            stats.user_id,
            stats.total_points,
            stats.level,
            stats.total_metrics_logged,
            stats.current_streak,
            stats.longest_streak,
            stats.last_activity_date,
        )


def _row_to_stats(row: Any) -> UserStats:
    return UserStats(
        user_id=row["user_id"],
        total_points=row["total_points"],
        level=row["level"],
        total_metrics_logged=row["total_metrics_logged"],
        current_streak=row["current_streak"],
        longest_streak=row["longest_streak"],
        last_activity_date=row["last_activity_date"],
    )
