"""Tests for MetricIngestionPipeline."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from vitalwatch.alerts.config import AlertConfig
from vitalwatch.alerts.dispatcher import NotificationDispatcher
from vitalwatch.alerts.store import AlertStore
from vitalwatch.gamification.service import GamificationHook
from vitalwatch.pipeline.ingestion import MetricIngestionPipeline
from vitalwatch.readings.repository import ReadingRepository
from vitalwatch.users.directory import SubjectUser, UserDirectory


@pytest.fixture
def readings():
    repo = AsyncMock(spec=ReadingRepository)
    repo.create.side_effect = lambda reading: reading
    return repo


@pytest.fixture
def alert_store():
    store = AsyncMock(spec=AlertStore)
    store.create.side_effect = lambda alert: alert
    return store


@pytest.fixture
def dispatcher():
    mock = AsyncMock(spec=NotificationDispatcher)
    mock.dispatch.return_value = [("push", True)]
    return mock


@pytest.fixture
def users(subject_user):
    directory = AsyncMock(spec=UserDirectory)
    directory.get_or_placeholder.return_value = subject_user
    return directory


@pytest.fixture
def gamification():
    return AsyncMock(spec=GamificationHook)


@pytest.fixture
def pipeline(readings, alert_store, dispatcher, users, gamification):
    return MetricIngestionPipeline(
        readings=readings,
        alert_store=alert_store,
        dispatcher=dispatcher,
        users=users,
        gamification=gamification,
    )


class TestIngest:
    @pytest.mark.asyncio
    async def test_normal_reading_creates_no_alert(
        self, pipeline, readings, alert_store, dispatcher, make_reading,
    ):
        result = await pipeline.ingest(make_reading(value=72))
        await pipeline.drain()

        assert result.alert is None
        readings.create.assert_awaited_once()
        alert_store.create.assert_not_awaited()
        dispatcher.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_abnormal_reading_creates_and_dispatches(
        self, pipeline, dispatcher, make_reading, subject_user,
    ):
        result = await pipeline.ingest(make_reading(value=130))
        await pipeline.drain()

        assert result.alert is not None
        assert result.alert.severity == "high"
        assert result.alert.user_id == "patient_1"
        assert result.alert.metric_snapshot.value == 130
        dispatcher.dispatch.assert_awaited_once_with(result.alert, subject_user)

    @pytest.mark.asyncio
    async def test_gamification_runs_for_every_reading(
        self, pipeline, gamification, make_reading,
    ):
        result = await pipeline.ingest(make_reading(value=72))
        await pipeline.drain()

        gamification.on_reading.assert_awaited_once_with(result.reading)

    @pytest.mark.asyncio
    async def test_null_value_is_stored_without_alert(
        self, pipeline, readings, alert_store, make_reading,
    ):
        result = await pipeline.ingest(make_reading(value=None))

        assert result.alert is None
        readings.create.assert_awaited_once()
        alert_store.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reading_write_failure_propagates(
        self, pipeline, readings, alert_store, make_reading,
    ):
        readings.create.side_effect = ConnectionError("db down")

        with pytest.raises(ConnectionError):
            await pipeline.ingest(make_reading(value=130))
        alert_store.create.assert_not_awaited()


class TestIsolation:
    @pytest.mark.asyncio
    async def test_alert_create_failure_keeps_reading(
        self, pipeline, alert_store, dispatcher, make_reading,
    ):
        alert_store.create.side_effect = RuntimeError("alerts table locked")

        result = await pipeline.ingest(make_reading(value=130))
        await pipeline.drain()

        assert result.reading.reading_id == "reading_001"
        assert result.alert is None
        dispatcher.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dispatch_failure_does_not_reach_caller(
        self, pipeline, dispatcher, make_reading,
    ):
        dispatcher.dispatch.side_effect = RuntimeError("smtp exploded")

        result = await pipeline.ingest(make_reading(value=130))
        assert await pipeline.drain() == 0

        assert result.alert is not None
        assert pipeline.pending_tasks == 0

    @pytest.mark.asyncio
    async def test_gamification_failure_is_isolated(
        self, pipeline, gamification, make_reading,
    ):
        gamification.on_reading.side_effect = RuntimeError("deadlock")

        result = await pipeline.ingest(make_reading(value=130))
        await pipeline.drain()

        assert result.alert is not None

    @pytest.mark.asyncio
    async def test_unknown_user_gets_placeholder(
        self, readings, alert_store, dispatcher, make_reading,
    ):
        pipeline = MetricIngestionPipeline(
            readings=readings, alert_store=alert_store, dispatcher=dispatcher,
        )

        result = await pipeline.ingest(make_reading(value=130))
        await pipeline.drain()

        dispatcher.dispatch.assert_awaited_once_with(
            result.alert, SubjectUser(user_id="patient_1"),
        )


class TestDedup:
    def _pipeline(self, readings, alert_store, redis, window=10):
        return MetricIngestionPipeline(
            readings=readings,
            alert_store=alert_store,
            config=AlertConfig(dedup_window_minutes=window),
            redis_client=redis,
        )

    @pytest.mark.asyncio
    async def test_disabled_by_default(self, readings, alert_store, make_reading):
        redis = MagicMock()
        redis.set = AsyncMock(return_value=None)
        pipeline = self._pipeline(readings, alert_store, redis, window=0)

        first = await pipeline.ingest(make_reading(value=130))
        second = await pipeline.ingest(make_reading(value=130))

        assert first.alert is not None
        assert second.alert is not None
        redis.set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_suppresses_within_window(self, readings, alert_store, make_reading):
        redis = MagicMock()
        redis.set = AsyncMock(side_effect=[True, None])
        pipeline = self._pipeline(readings, alert_store, redis)

        first = await pipeline.ingest(make_reading(value=130))
        second = await pipeline.ingest(make_reading(value=130))

        assert first.alert is not None
        assert second.alert is None
        assert alert_store.create.await_count == 1
        redis.set.assert_awaited_with(
            "alert:dedup:patient_1:heartRate:high", "1", nx=True, ex=600,
        )

    @pytest.mark.asyncio
    async def test_redis_error_allows_alert(self, readings, alert_store, make_reading):
        redis = MagicMock()
        redis.set = AsyncMock(side_effect=ConnectionError("redis down"))
        pipeline = self._pipeline(readings, alert_store, redis)

        result = await pipeline.ingest(make_reading(value=130))

        assert result.alert is not None

    @pytest.mark.asyncio
    async def test_failed_create_releases_window(self, readings, alert_store, make_reading):
        keys: dict[str, str] = {}

        async def set_nx(key, value, nx=False, ex=None):
            if nx and key in keys:
                return None
            keys[key] = value
            return True

        async def delete(key):
            return 1 if keys.pop(key, None) is not None else 0

        redis = MagicMock()
        redis.set = AsyncMock(side_effect=set_nx)
        redis.delete = AsyncMock(side_effect=delete)
        calls = []

        async def flaky_create(alert):
            calls.append(alert)
            if len(calls) == 1:
                raise RuntimeError("db blip")
            return alert

        alert_store.create.side_effect = flaky_create
        pipeline = self._pipeline(readings, alert_store, redis)

        first = await pipeline.ingest(make_reading(value=130))
        second = await pipeline.ingest(make_reading(value=130))

        assert first.alert is None
        assert second.alert is not None
        redis.delete.assert_awaited_once_with("alert:dedup:patient_1:heartRate:high")
        assert "alert:dedup:patient_1:heartRate:high" in keys

    @pytest.mark.asyncio
    async def test_suppressed_alert_does_not_release_window(
        self, readings, alert_store, make_reading,
    ):
        redis = MagicMock()
        redis.set = AsyncMock(return_value=None)
        redis.delete = AsyncMock()
        pipeline = self._pipeline(readings, alert_store, redis)

        result = await pipeline.ingest(make_reading(value=130))

        assert result.alert is None
        redis.delete.assert_not_awaited()
        alert_store.create.assert_not_awaited()


class TestDrain:
    @pytest.mark.asyncio
    async def test_drain_without_tasks(self, readings, alert_store):
        pipeline = MetricIngestionPipeline(readings=readings, alert_store=alert_store)
        assert await pipeline.drain() == 0

    @pytest.mark.asyncio
    async def test_drain_timeout_reports_pending(
        self, readings, alert_store, gamification, make_reading,
    ):
        release = asyncio.Event()

        async def slow(reading):
            await release.wait()

        gamification.on_reading.side_effect = slow
        pipeline = MetricIngestionPipeline(
            readings=readings, alert_store=alert_store, gamification=gamification,
        )

        await pipeline.ingest(make_reading())
        assert await pipeline.drain(timeout=0.01) == 1

        release.set()
        assert await pipeline.drain() == 0
