"""Shared fixtures for API tests."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from vitalwatch.alerts.repository import AlertRepository
from vitalwatch.alerts.store import AlertStore
from vitalwatch.api.app import create_app
from vitalwatch.api.auth import verify_api_key
from vitalwatch.api.dependencies import (
    get_alert_store,
    get_database,
    get_email_service,
    get_pipeline,
    get_reading_repository,
    get_redis_client,
)
from vitalwatch.email.service import EmailDeliveryService
from vitalwatch.pipeline.ingestion import IngestionResult, MetricIngestionPipeline
from vitalwatch.readings.repository import ReadingRepository
from vitalwatch.storage.database import Database


@pytest.fixture
def patient_headers():
    return {"X-User-Id": "patient_1", "X-User-Role": "patient"}


@pytest.fixture
def provider_headers():
    return {"X-User-Id": "provider_1", "X-User-Role": "provider"}


@pytest.fixture
def admin_headers():
    return {"X-User-Id": "admin_1", "X-User-Role": "admin"}


@pytest.fixture
def mock_pipeline():
    """Mock MetricIngestionPipeline that stores readings without alerting."""
    pipeline = AsyncMock(spec=MetricIngestionPipeline)

    async def ingest(reading):
        return IngestionResult(reading=reading)

    pipeline.ingest.side_effect = ingest
    return pipeline


@pytest.fixture
def mock_reading_repo():
    """Mock ReadingRepository."""
    repo = AsyncMock(spec=ReadingRepository)
    repo.get_by_id.return_value = None
    repo.list_for_user.return_value = []
    repo.get_latest_by_type.return_value = {}
    repo.get_in_range.return_value = []
    repo.delete.return_value = True
    return repo


@pytest.fixture
def mock_alert_repo():
    """Mock AlertRepository behind a real AlertStore."""
    repo = AsyncMock(spec=AlertRepository)
    repo.get_by_id.return_value = None
    repo.list_alerts.return_value = []
    repo.get_critical_unacknowledged.return_value = []
    repo.count_unread.return_value = 0
    repo.delete.return_value = True
    return repo


@pytest.fixture
def mock_database():
    db = MagicMock(spec=Database)
    db.health_check = AsyncMock(return_value=True)
    return db


@pytest.fixture
def mock_redis():
    redis = MagicMock()
    redis.ping = AsyncMock(return_value=True)
    return redis


@pytest.fixture
def mock_email_service():
    service = MagicMock(spec=EmailDeliveryService)
    service.providers = ()
    return service


@pytest.fixture
def app(
    mock_pipeline,
    mock_reading_repo,
    mock_alert_repo,
    mock_database,
    mock_redis,
    mock_email_service,
):
    """FastAPI app with dependency overrides."""
    app = create_app()

    app.dependency_overrides[verify_api_key] = lambda: "test-key"
    app.dependency_overrides[get_pipeline] = lambda: mock_pipeline
    app.dependency_overrides[get_reading_repository] = lambda: mock_reading_repo
    app.dependency_overrides[get_alert_store] = lambda: AlertStore(mock_alert_repo)
    app.dependency_overrides[get_database] = lambda: mock_database
    app.dependency_overrides[get_redis_client] = lambda: mock_redis
    app.dependency_overrides[get_email_service] = lambda: mock_email_service

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """TestClient with the lifespan's Redis and database work stubbed."""
    with (
        patch("vitalwatch.api.app.start_broadcaster", AsyncMock()),
        patch("vitalwatch.api.app.drain_pipeline", AsyncMock()),
        patch("vitalwatch.api.app.stop_broadcaster", AsyncMock()),
        patch("vitalwatch.api.app.cleanup_dependencies", AsyncMock()),
    ):
        with TestClient(app, raise_server_exceptions=False) as c:
            yield c
