"""
Dependency injection for FastAPI endpoints.

Services are module-level singletons created on first use. Tests
replace them through ``app.dependency_overrides``.
"""

import logging

import redis.asyncio as redis

from vitalwatch.alerts.config import AlertConfig
from vitalwatch.alerts.dispatcher import NotificationConfig, NotificationDispatcher
from vitalwatch.alerts.realtime import RoomBroadcaster
from vitalwatch.alerts.repository import AlertRepository
from vitalwatch.alerts.store import AlertStore
from vitalwatch.config.settings import get_settings
from vitalwatch.email.audit import EmailAttemptLog
from vitalwatch.email.config import EmailConfig
from vitalwatch.email.providers import build_providers
from vitalwatch.email.service import EmailDeliveryService
from vitalwatch.gamification.service import PointsAwarder
from vitalwatch.pipeline.ingestion import MetricIngestionPipeline
from vitalwatch.readings.repository import ReadingRepository
from vitalwatch.storage.database import Database, close_database
from vitalwatch.storage.database import get_database as get_shared_database
from vitalwatch.users.directory import UserDirectory

logger = logging.getLogger(__name__)

# Global service instances (initialized on first request)
_redis_client: redis.Redis | None = None
_broadcaster: RoomBroadcaster | None = None
_email_service: EmailDeliveryService | None = None
_pipeline: MetricIngestionPipeline | None = None


def _get_redis() -> redis.Redis:
    global _redis_client

    if _redis_client is None:
        settings = get_settings()
        _redis_client = redis.from_url(
            str(settings.redis_url),
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_client


async def get_redis_client() -> redis.Redis:
    """Get the shared Redis client (real-time fan-out and dedup)."""
    return _get_redis()


async def get_database() -> Database:
    """Get the shared, connected database pool."""
    return await get_shared_database()


async def get_reading_repository() -> ReadingRepository:
    return ReadingRepository(await get_database())


async def get_alert_repository() -> AlertRepository:
    return AlertRepository(await get_database())


async def get_alert_store() -> AlertStore:
    return AlertStore(await get_alert_repository())


def get_broadcaster() -> RoomBroadcaster:
    """Get the process-wide WebSocket room broadcaster."""
    global _broadcaster

    if _broadcaster is None:
        settings = get_settings()
        _broadcaster = RoomBroadcaster(
            max_connections=settings.ws_max_connections,
            heartbeat_interval=settings.ws_heartbeat_seconds,
        )
    return _broadcaster


async def start_broadcaster() -> RoomBroadcaster:
    """Start the broadcaster with Redis pub/sub fan-out."""
    broadcaster = get_broadcaster()
    await broadcaster.start(_get_redis())
    return broadcaster


async def stop_broadcaster() -> None:
    global _broadcaster

    if _broadcaster is not None:
        await _broadcaster.stop()
        _broadcaster = None


async def get_email_service() -> EmailDeliveryService:
    """Get the email service with providers resolved once from settings."""
    global _email_service

    if _email_service is None:
        config = EmailConfig()
        _email_service = EmailDeliveryService(
            providers=build_providers(get_settings(), config),
            audit=EmailAttemptLog(await get_database()),
            config=config,
        )
    return _email_service


async def get_pipeline() -> MetricIngestionPipeline:
    """
    Get the ingestion pipeline.

    Wires repositories, dispatcher, email, gamification, and the
    optional Redis dedup gate into a singleton.
    """
    global _pipeline

    if _pipeline is None:
        settings = get_settings()
        database = await get_database()
        alert_repo = AlertRepository(database)

        dispatcher = NotificationDispatcher(
            realtime=get_broadcaster() if settings.ws_enabled else None,
            alert_repository=alert_repo,
            email_service=await get_email_service(),
            config=NotificationConfig(),
            dashboard_url=settings.dashboard_url,
        )

        _pipeline = MetricIngestionPipeline(
            readings=ReadingRepository(database),
            alert_store=AlertStore(alert_repo),
            dispatcher=dispatcher,
            users=UserDirectory(database),
            gamification=PointsAwarder(database),
            config=AlertConfig(),
            redis_client=_get_redis(),
        )
    return _pipeline


async def drain_pipeline(timeout: float = 10.0) -> None:
    """Wait for in-flight dispatch and award tasks to finish.

    Runs before the broadcaster stops so pending ``alert:new`` pushes
    still reach connected rooms.
    """
    if _pipeline is not None:
        pending = await _pipeline.drain(timeout=timeout)
        if pending:
            logger.warning("Pipeline drain timed out with %d task(s) pending", pending)


async def cleanup_dependencies(drain_timeout: float = 10.0) -> None:
    """Drain background work and close global dependencies on shutdown."""
    global _redis_client, _email_service, _pipeline

    if _pipeline is not None:
        await _pipeline.drain(timeout=drain_timeout)
        _pipeline = None

    _email_service = None

    await close_database()

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
