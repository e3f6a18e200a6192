"""Tests for AlertStore with a mocked repository."""

from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from vitalwatch.alerts.repository import AlertRepository
from vitalwatch.alerts.schemas import AlertFilter
from vitalwatch.alerts.store import AlertStore
from vitalwatch.errors import AccessDeniedError, AlertNotFoundError


@pytest.fixture
def mock_repo():
    repo = AsyncMock(spec=AlertRepository)
    repo.get_by_id.return_value = None
    repo.list_alerts.return_value = []
    repo.count_unread.return_value = 0
    return repo


@pytest.fixture
def store(mock_repo):
    return AlertStore(mock_repo)


class TestList:
    @pytest.mark.asyncio
    async def test_patient_list_is_scoped(self, store, mock_repo, patient):
        await store.list_alerts(patient, AlertFilter(user_id="patient_2"))

        scoped = mock_repo.list_alerts.call_args[0][0]
        assert scoped.user_id == "patient_1"

    @pytest.mark.asyncio
    async def test_provider_list_for_patient(self, store, mock_repo, provider):
        await store.list_alerts(provider, AlertFilter(user_id="patient_2"), limit=5, offset=10)

        mock_repo.list_alerts.assert_awaited_once_with(
            AlertFilter(user_id="patient_2"), limit=5, offset=10,
        )


class TestUnreadCount:
    @pytest.mark.asyncio
    async def test_own_count(self, store, mock_repo, patient):
        mock_repo.count_unread.return_value = 4
        assert await store.get_unread_count(patient) == 4
        mock_repo.count_unread.assert_awaited_once_with("patient_1")

    @pytest.mark.asyncio
    async def test_patient_cannot_read_other_count(self, store, patient):
        with pytest.raises(AccessDeniedError):
            await store.get_unread_count(patient, "patient_2")


class TestMarkRead:
    @pytest.mark.asyncio
    async def test_marks_unread_alert(self, store, mock_repo, patient, make_alert):
        alert = make_alert()
        mock_repo.get_by_id.return_value = alert
        mock_repo.mark_read.return_value = replace(alert, is_read=True)

        result = await store.mark_read(patient, "alert_001")

        assert result.is_read
        mock_repo.mark_read.assert_awaited_once_with("alert_001")

    @pytest.mark.asyncio
    async def test_idempotent(self, store, mock_repo, patient, make_alert):
        alert = make_alert()
        read = replace(alert, is_read=True)
        mock_repo.get_by_id.side_effect = [alert, read]
        mock_repo.mark_read.return_value = read

        first = await store.mark_read(patient, "alert_001")
        second = await store.mark_read(patient, "alert_001")

        assert first == second
        assert mock_repo.mark_read.await_count == 1

    @pytest.mark.asyncio
    async def test_not_found(self, store, patient):
        with pytest.raises(AlertNotFoundError):
            await store.mark_read(patient, "missing")

    @pytest.mark.asyncio
    async def test_other_patient_denied(self, store, mock_repo, other_patient, make_alert):
        mock_repo.get_by_id.return_value = make_alert()

        with pytest.raises(AccessDeniedError):
            await store.mark_read(other_patient, "alert_001")
        mock_repo.mark_read.assert_not_awaited()


class TestAcknowledge:
    @pytest.mark.asyncio
    async def test_provider_acknowledges(self, store, mock_repo, provider, make_alert):
        alert = make_alert()
        mock_repo.get_by_id.return_value = alert
        mock_repo.acknowledge.return_value = replace(
            alert, is_acknowledged=True, acknowledged_by="provider_1",
        )

        result = await store.acknowledge(provider, "alert_001")

        assert result.is_acknowledged
        assert result.acknowledged_by == "provider_1"
        mock_repo.acknowledge.assert_awaited_once_with("alert_001", "provider_1")

    @pytest.mark.asyncio
    async def test_second_acknowledge_keeps_first_acknowledger(
        self, store, mock_repo, admin, make_alert,
    ):
        acked = make_alert(is_acknowledged=True, acknowledged_by="provider_1")
        mock_repo.get_by_id.return_value = acked

        result = await store.acknowledge(admin, "alert_001")

        assert result.acknowledged_by == "provider_1"
        mock_repo.acknowledge.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_found_before_access(self, store, patient):
        # A patient would be denied, but a missing id is reported first
        with pytest.raises(AlertNotFoundError):
            await store.acknowledge(patient, "missing")

    @pytest.mark.asyncio
    async def test_patient_denied(self, store, mock_repo, patient, make_alert):
        mock_repo.get_by_id.return_value = make_alert()

        with pytest.raises(AccessDeniedError):
            await store.acknowledge(patient, "alert_001")


class TestDelete:
    @pytest.mark.asyncio
    async def test_owner_deletes(self, store, mock_repo, patient, make_alert):
        mock_repo.get_by_id.return_value = make_alert()
        mock_repo.delete.return_value = True

        await store.delete(patient, "alert_001")
        mock_repo.delete.assert_awaited_once_with("alert_001")

    @pytest.mark.asyncio
    async def test_provider_cannot_delete_patient_alert(
        self, store, mock_repo, provider, make_alert,
    ):
        mock_repo.get_by_id.return_value = make_alert()

        with pytest.raises(AccessDeniedError):
            await store.delete(provider, "alert_001")
