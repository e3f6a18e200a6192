"""User engagement stats updated each time a reading is logged."""

from dataclasses import dataclass
from datetime import date
from typing import Any

POINTS_PER_LEVEL = 500
DEFAULT_POINTS = 2

POINTS_MAP: dict[str, int] = {
    "heartRate": 5,
    "bloodPressure": 10,
    "bloodGlucose": 10,
    "steps": 3,
    "sleep": 8,
    "weight": 5,
    "oxygenSaturation": 5,
    "calories": 3,
    "distance": 5,
}


def points_for(metric_type: str) -> int:
    return POINTS_MAP.get(metric_type, DEFAULT_POINTS)


def level_for(total_points: int) -> int:
    """Level 1 at 0 points, +1 every ``POINTS_PER_LEVEL``."""
    return total_points // POINTS_PER_LEVEL + 1


@dataclass
class UserStats:
    """Row of the ``user_stats`` table."""

    user_id: str
    total_points: int = 0
    level: int = 1
    total_metrics_logged: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "total_points": self.total_points,
            "level": self.level,
            "total_metrics_logged": self.total_metrics_logged,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_activity_date": (
                self.last_activity_date.isoformat() if self.last_activity_date else None
            ),
        }


def apply_reading(stats: UserStats, metric_type: str, today: date) -> UserStats:
    """Return ``stats`` updated for one logged reading.

    Points accrue per metric type; the level never decreases. The daily
    streak grows on consecutive days, resets to 1 after a gap, and is
    unchanged for a second reading on the same day.
    """
    total_points = stats.total_points + points_for(metric_type)
    level = max(stats.level, level_for(total_points))

    current = stats.current_streak
    if stats.last_activity_date is None:
        current = 1
    else:
        days = (today - stats.last_activity_date).days
        if days == 1:
            current += 1
        elif days > 1:
            current = 1

    return UserStats(
        user_id=stats.user_id,
        total_points=total_points,
        level=level,
        total_metrics_logged=stats.total_metrics_logged + 1,
        current_streak=current,
        longest_streak=max(stats.longest_streak, current),
        last_activity_date=today,
    )
