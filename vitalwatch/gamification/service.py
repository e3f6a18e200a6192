"""Gamification award hook run after each persisted reading."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from vitalwatch.gamification.repository import UserStatsRepository
from vitalwatch.gamification.schemas import UserStats, apply_reading
from vitalwatch.readings.schemas import MetricReading
from vitalwatch.storage.database import Database

logger = logging.getLogger(__name__)


class GamificationHook(ABC):
    """Called by the ingestion pipeline once a reading is durable."""

    @abstractmethod
    async def on_reading(self, reading: MetricReading) -> None:
        ...


class PointsAwarder(GamificationHook):
    """Awards points, levels, and streaks in ``user_stats``."""

    def __init__(self, database: Database, repository: UserStatsRepository | None = None) -> None:
        self._db = database
        self._repo = repository or UserStatsRepository(database)

    async def on_reading(self, reading: MetricReading) -> None:
        await self.award(reading)

    async def award(self, reading: MetricReading) -> UserStats:
        today = datetime.now(timezone.utc).date()
        async with self._db.transaction() as conn:
            current = await self._repo.lock(conn, reading.user_id)
            updated = apply_reading(current, reading.metric_type, today)
            await self._repo.save(conn, updated)

        if updated.level > current.level:
            logger.info("User %s reached level %d", reading.user_id, updated.level)
        return updated
