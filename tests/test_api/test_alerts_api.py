"""Tests for the /alerts endpoints."""

from dataclasses import replace
from datetime import datetime, timezone

from vitalwatch.alerts.schemas import AlertFilter


class TestListAlerts:
    def test_empty(self, client, patient_headers):
        response = client.get("/alerts", headers=patient_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["alerts"] == []
        assert data["total"] == 0
        assert "latency_ms" in data

    def test_returns_alerts(self, client, mock_alert_repo, patient_headers, make_alert):
        mock_alert_repo.list_alerts.return_value = [
            make_alert(alert_id="a2", severity="critical"),
            make_alert(alert_id="a1"),
        ]

        response = client.get("/alerts", headers=patient_headers)

        data = response.json()
        assert data["total"] == 2
        assert [a["alert_id"] for a in data["alerts"]] == ["a2", "a1"]
        assert data["alerts"][0]["created_at"] == "2026-03-02T09:30:00+00:00"

    def test_filters_are_scoped_to_patient(self, client, mock_alert_repo, patient_headers):
        client.get(
            "/alerts?user_id=patient_2&severity=high&is_read=false&limit=10&offset=20",
            headers=patient_headers,
        )

        call = mock_alert_repo.list_alerts.await_args
        assert call.args[0] == AlertFilter(user_id="patient_1", severity="high", is_read=False)
        assert call.kwargs == {"limit": 10, "offset": 20}

    def test_provider_views_patient(self, client, mock_alert_repo, provider_headers):
        client.get("/alerts?user_id=patient_2", headers=provider_headers)

        assert mock_alert_repo.list_alerts.await_args.args[0].user_id == "patient_2"

    def test_admin_unfiltered(self, client, mock_alert_repo, admin_headers):
        client.get("/alerts", headers=admin_headers)

        assert mock_alert_repo.list_alerts.await_args.args[0] == AlertFilter()

    def test_invalid_severity(self, client, patient_headers):
        response = client.get("/alerts?severity=urgent", headers=patient_headers)

        assert response.status_code == 422

    def test_limit_bounds(self, client, patient_headers):
        response = client.get("/alerts?limit=0", headers=patient_headers)

        assert response.status_code == 422

    def test_critical_only(self, client, mock_alert_repo, provider_headers, make_alert):
        mock_alert_repo.get_critical_unacknowledged.return_value = [
            make_alert(severity="critical"),
        ]

        response = client.get(
            "/alerts?critical_only=true&user_id=patient_1", headers=provider_headers,
        )

        assert response.json()["total"] == 1
        mock_alert_repo.get_critical_unacknowledged.assert_awaited_once_with("patient_1")
        mock_alert_repo.list_alerts.assert_not_awaited()


class TestUnreadCount:
    def test_count(self, client, mock_alert_repo, patient_headers):
        mock_alert_repo.count_unread.return_value = 7

        response = client.get("/alerts/unread-count", headers=patient_headers)

        assert response.status_code == 200
        assert response.json() == {"count": 7}

    def test_patient_cannot_count_other(self, client, patient_headers):
        response = client.get("/alerts/unread-count?user_id=patient_2", headers=patient_headers)

        assert response.status_code == 403


class TestMarkRead:
    def test_marks_read(self, client, mock_alert_repo, patient_headers, make_alert):
        alert = make_alert()
        mock_alert_repo.get_by_id.return_value = alert
        mock_alert_repo.mark_read.return_value = replace(alert, is_read=True)

        response = client.patch("/alerts/alert_001/read", headers=patient_headers)

        assert response.status_code == 200
        assert response.json()["is_read"] is True

    def test_not_found(self, client, patient_headers):
        response = client.patch("/alerts/missing/read", headers=patient_headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "Alert not found"

    def test_other_patient_forbidden(self, client, mock_alert_repo, make_alert):
        mock_alert_repo.get_by_id.return_value = make_alert()

        response = client.patch(
            "/alerts/alert_001/read",
            headers={"X-User-Id": "patient_2", "X-User-Role": "patient"},
        )

        assert response.status_code == 403


class TestAcknowledge:
    def test_provider_acknowledges(self, client, mock_alert_repo, provider_headers, make_alert):
        alert = make_alert(severity="critical")
        acked_at = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)
        mock_alert_repo.get_by_id.return_value = alert
        mock_alert_repo.acknowledge.return_value = replace(
            alert, is_acknowledged=True, acknowledged_by="provider_1", acknowledged_at=acked_at,
        )

        response = client.post("/alerts/alert_001/acknowledge", headers=provider_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["is_acknowledged"] is True
        assert data["acknowledged_by"] == "provider_1"
        assert data["acknowledged_at"] == "2026-03-02T10:00:00+00:00"

    def test_patient_forbidden(self, client, mock_alert_repo, patient_headers, make_alert):
        mock_alert_repo.get_by_id.return_value = make_alert()

        response = client.post("/alerts/alert_001/acknowledge", headers=patient_headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "Only healthcare providers can acknowledge alerts"

    def test_missing_alert_is_404_even_for_patient(self, client, patient_headers):
        response = client.post("/alerts/missing/acknowledge", headers=patient_headers)

        assert response.status_code == 404


class TestDeleteAlert:
    def test_owner_deletes(self, client, mock_alert_repo, patient_headers, make_alert):
        mock_alert_repo.get_by_id.return_value = make_alert()

        response = client.delete("/alerts/alert_001", headers=patient_headers)

        assert response.status_code == 200
        assert response.json() == {"id": "alert_001", "deleted": True}

    def test_admin_deletes_any(self, client, mock_alert_repo, admin_headers, make_alert):
        mock_alert_repo.get_by_id.return_value = make_alert()

        response = client.delete("/alerts/alert_001", headers=admin_headers)

        assert response.status_code == 200

    def test_provider_forbidden(self, client, mock_alert_repo, provider_headers, make_alert):
        mock_alert_repo.get_by_id.return_value = make_alert()

        response = client.delete("/alerts/alert_001", headers=provider_headers)

        assert response.status_code == 403
        mock_alert_repo.delete.assert_not_awaited()
