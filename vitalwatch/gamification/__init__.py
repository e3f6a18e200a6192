"""Points, levels, and streaks for logged readings."""

from vitalwatch.gamification.repository import UserStatsRepository
from vitalwatch.gamification.schemas import (
    POINTS_MAP,
    UserStats,
    apply_reading,
    level_for,
    points_for,
)
from vitalwatch.gamification.service import GamificationHook, PointsAwarder

__all__ = [
    "GamificationHook",
    "POINTS_MAP",
    "PointsAwarder",
    "UserStats",
    "UserStatsRepository",
    "apply_reading",
    "level_for",
    "points_for",
]
