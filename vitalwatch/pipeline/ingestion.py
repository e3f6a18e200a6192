"""Metric ingestion pipeline: persist, evaluate, alert, notify, award.

Pipeline steps per reading:
    1. Persist the reading (the only step whose failure reaches the caller)
    2. Evaluate it against the threshold table
    3. On a decision, pass the optional dedup gate and create the alert
    4. Schedule notification dispatch for the created alert
    5. Schedule the gamification award

Steps 3-5 are best-effort: failures are logged and counted, and the
reading stays durable. Steps 4 and 5 run as tracked background tasks
so the caller never waits on email or WebSocket delivery; ``drain()``
waits for them at shutdown.
"""

import asyncio
import logging
import time
from collections.abc import Coroutine, Mapping
from dataclasses import dataclass
from typing import Any

from vitalwatch.alerts.config import AlertConfig
from vitalwatch.alerts.dispatcher import NotificationDispatcher
from vitalwatch.alerts.evaluator import evaluate
from vitalwatch.alerts.schemas import Alert, AlertDecision
from vitalwatch.alerts.store import AlertStore
from vitalwatch.alerts.thresholds import DEFAULT_THRESHOLDS, Threshold
from vitalwatch.gamification.service import GamificationHook
from vitalwatch.observability.metrics import get_metrics
from vitalwatch.readings.repository import ReadingRepository
from vitalwatch.readings.schemas import MetricReading
from vitalwatch.users.directory import SubjectUser, UserDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestionResult:
    """The persisted reading, plus the alert if one was created."""

    reading: MetricReading
    alert: Alert | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "reading": self.reading.to_dict(),
            "alert": self.alert.to_dict() if self.alert else None,
        }


class MetricIngestionPipeline:
    """Orchestrates one reading through the alerting core.

    Safe for concurrent use: no shared mutable state beyond the set of
    outstanding background tasks.
    """

    def __init__(
        self,
        readings: ReadingRepository,
        alert_store: AlertStore,
        dispatcher: NotificationDispatcher | None = None,
        users: UserDirectory | None = None,
        gamification: GamificationHook | None = None,
        config: AlertConfig | None = None,
        redis_client: Any | None = None,
        thresholds: Mapping[str, Threshold] = DEFAULT_THRESHOLDS,
    ) -> None:
        self._readings = readings
        self._alerts = alert_store
        self._dispatcher = dispatcher
        self._users = users
        self._gamification = gamification
        self._config = config or AlertConfig()
        self._redis = redis_client
        self._thresholds = thresholds
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def ingest(self, reading: MetricReading) -> IngestionResult:
        """Persist and process one reading.

        Args:
            reading: Validated reading.

        Returns:
            IngestionResult with the stored reading and the created alert,
            if any.

        Raises:
            Exception: Storage errors on the reading write propagate.
        """
        start = time.perf_counter()
        metrics = get_metrics()

        stored = await self._readings.create(reading)

        alert: Alert | None = None
        decision = evaluate(stored, self._config, self._thresholds)
        if decision is not None:
            alert = await self._create_alert(stored, decision)

        if alert is not None and self._dispatcher is not None:
            self._spawn(self._dispatch(alert), f"dispatch-{alert.alert_id}")

        if self._gamification is not None:
            self._spawn(self._award(stored), f"award-{stored.reading_id}")

        metrics.record_reading(stored.metric_type, latency=time.perf_counter() - start)
        return IngestionResult(reading=stored, alert=alert)

    async def _create_alert(
        self,
        reading: MetricReading,
        decision: AlertDecision,
    ) -> Alert | None:
        metrics = get_metrics()

        claimed, key = await self._claim_dedup_key(
            reading.user_id, reading.metric_type, decision.severity,
        )
        if not claimed:
            logger.info(
                "Suppressed duplicate %s alert for user %s (%s)",
                decision.severity, reading.user_id, reading.metric_type,
            )
            metrics.record_suppressed(decision.severity)
            return None

        try:
            alert = await self._alerts.create(decision.to_alert(reading.user_id))
        except Exception as e:
            logger.error(
                "Failed to create alert for reading %s: %s", reading.reading_id, e,
            )
            metrics.record_stage_failure("alert")
            if key is not None:
                await self._release_dedup_key(key)
            return None

        metrics.record_alert(alert.severity)
        return alert

    async def _claim_dedup_key(
        self, user_id: str, metric_type: str, severity: str,
    ) -> tuple[bool, str | None]:
        """Claim the dedup window for an alert with Redis SET NX.

        Key format: ``alert:dedup:{user_id}:{metric_type}:{severity}``.
        Disabled when the window is 0 or Redis is absent. A Redis error
        allows the alert.

        Returns:
            ``(claimed, key)``. ``claimed`` is False when another alert
            holds the window. ``key`` is set only if this call wrote it,
            so the caller can release it when the alert is not stored.
        """
        window = self._config.dedup_window_minutes
        if window <= 0 or self._redis is None:
            return True, None

        key = f"alert:dedup:{user_id}:{metric_type}:{severity}"
        try:
            was_set = await self._redis.set(key, "1", nx=True, ex=window * 60)
        except Exception as e:
            logger.warning("Redis dedup check failed, allowing alert: %s", e)
            return True, None
        if not was_set:
            return False, None
        return True, key

    async def _release_dedup_key(self, key: str) -> None:
        try:
            await self._redis.delete(key)
        except Exception as e:
            logger.warning("Failed to release dedup key %s: %s", key, e)

    async def _dispatch(self, alert: Alert) -> None:
        try:
            if self._users is not None:
                user = await self._users.get_or_placeholder(alert.user_id)
            else:
                user = SubjectUser(user_id=alert.user_id)
            await self._dispatcher.dispatch(alert, user)
        except Exception as e:
            logger.error("Dispatch failed for alert %s: %s", alert.alert_id, e)
            get_metrics().record_stage_failure("dispatch")

    async def _award(self, reading: MetricReading) -> None:
        try:
            await self._gamification.on_reading(reading)
        except Exception as e:
            logger.error(
                "Gamification award failed for reading %s: %s", reading.reading_id, e,
            )
            get_metrics().record_stage_failure("gamification")

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self, timeout: float = 10.0) -> int:
        """Wait for background tasks to finish.

        Args:
            timeout: Seconds to wait before giving up.

        Returns:
            Number of tasks still running when the timeout expired.
        """
        if not self._tasks:
            return 0

        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning("%d background tasks still running after drain", len(pending))
        return len(pending)
