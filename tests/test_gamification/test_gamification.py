"""Tests for points, levels, and streaks."""

from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from vitalwatch.gamification.repository import UserStatsRepository
from vitalwatch.gamification.schemas import (
    DEFAULT_POINTS,
    UserStats,
    apply_reading,
    level_for,
    points_for,
)
from vitalwatch.gamification.service import PointsAwarder

TODAY = date(2026, 3, 2)


class TestPoints:
    def test_known_metric(self):
        assert points_for("bloodPressure") == 10

    def test_unknown_metric_gets_default(self):
        assert points_for("waterIntake") == DEFAULT_POINTS

    @pytest.mark.parametrize("points,level", [(0, 1), (499, 1), (500, 2), (1250, 3)])
    def test_level_for(self, points, level):
        assert level_for(points) == level


class TestApplyReading:
    def test_first_activity(self):
        updated = apply_reading(UserStats(user_id="patient_1"), "heartRate", TODAY)

        assert updated.total_points == 5
        assert updated.total_metrics_logged == 1
        assert updated.current_streak == 1
        assert updated.longest_streak == 1
        assert updated.last_activity_date == TODAY

    def test_consecutive_day_extends_streak(self):
        stats = UserStats(
            user_id="patient_1", current_streak=3, longest_streak=3,
            last_activity_date=TODAY - timedelta(days=1),
        )

        updated = apply_reading(stats, "steps", TODAY)

        assert updated.current_streak == 4
        assert updated.longest_streak == 4

    def test_same_day_keeps_streak(self):
        stats = UserStats(
            user_id="patient_1", current_streak=3, longest_streak=5,
            last_activity_date=TODAY,
        )

        updated = apply_reading(stats, "steps", TODAY)

        assert updated.current_streak == 3
        assert updated.total_metrics_logged == 1

    def test_gap_resets_streak(self):
        stats = UserStats(
            user_id="patient_1", current_streak=6, longest_streak=6,
            last_activity_date=TODAY - timedelta(days=3),
        )

        updated = apply_reading(stats, "steps", TODAY)

        assert updated.current_streak == 1
        assert updated.longest_streak == 6

    def test_level_up(self):
        stats = UserStats(user_id="patient_1", total_points=495, level=1)

        assert apply_reading(stats, "bloodPressure", TODAY).level == 2

    def test_level_never_decreases(self):
        stats = UserStats(user_id="patient_1", total_points=10, level=4)

        assert apply_reading(stats, "heartRate", TODAY).level == 4

    def test_input_is_not_mutated(self):
        stats = UserStats(user_id="patient_1")
        apply_reading(stats, "heartRate", TODAY)
        assert stats.total_points == 0


class TestPointsAwarder:
    @pytest.mark.asyncio
    async def test_award_locks_and_saves(self, make_reading):
        conn = MagicMock()

        @asynccontextmanager
        async def transaction():
            yield conn

        db = MagicMock()
        db.transaction = transaction
        repo = AsyncMock(spec=UserStatsRepository)
        yesterday = datetime.now(timezone.utc).date() - timedelta(days=1)
        repo.lock.return_value = UserStats(
            user_id="patient_1", total_points=498, level=1,
            current_streak=2, longest_streak=2, last_activity_date=yesterday,
        )

        updated = await PointsAwarder(db, repository=repo).award(make_reading())

        repo.lock.assert_awaited_once_with(conn, "patient_1")
        repo.save.assert_awaited_once_with(conn, updated)
        assert updated.total_points == 503
        assert updated.level == 2
        assert updated.current_streak == 3
