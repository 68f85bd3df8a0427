"""
Tests for the Dialer API
Routes run against the in-memory store with authentication overridden
"""
import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from app.api.v1 import dependencies
from app.core.config import get_settings
from app.main import app

API = "/api/v1"


@pytest.fixture
def client(store, settings):
    app.dependency_overrides[dependencies.get_current_user] = lambda: dependencies.CurrentUser(
        id="user-1", email="rep@example.com", name="Rep",
    )
    app.dependency_overrides[dependencies.get_store] = lambda: store
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[dependencies.get_annotator] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAuth:
    """Tests for portal authentication"""

    def test_missing_authorization(self):
        """Test that portal routes require a bearer token"""
        app.dependency_overrides[dependencies.get_supabase] = lambda: MagicMock()
        try:
            response = TestClient(app).get(f"{API}/dialer/queue")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 401

    def test_malformed_authorization(self):
        """Test a non-bearer header"""
        app.dependency_overrides[dependencies.get_supabase] = lambda: MagicMock()
        try:
            response = TestClient(app).get(f"{API}/dialer/queue", headers={"Authorization": "Token abc"})
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 401

    def test_valid_token(self, store):
        """Test a token Supabase accepts"""
        supabase = MagicMock()
        supabase.auth.get_user.return_value.user = MagicMock(
            id="user-1", email="rep@example.com", user_metadata={"name": "Rep"},
        )
        app.dependency_overrides[dependencies.get_supabase] = lambda: supabase
        app.dependency_overrides[dependencies.get_store] = lambda: store
        try:
            response = TestClient(app).get(f"{API}/calls/dashboard", headers={"Authorization": "Bearer good"})
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200
        supabase.auth.get_user.assert_called_once_with("good")


class TestDispositionEndpoint:
    """Tests for POST /dialer/disposition"""

    def test_records_outcome(self, client, store, make_lead):
        """Test a no-answer disposition end to end"""
        lead = make_lead()
        store._leads[lead.id] = lead

        response = client.post(f"{API}/dialer/disposition", json={"lead_id": lead.id, "outcome": "no_answer"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["new_status"] == "queued"
        assert data["attempt_count"] == 1
        assert data["next_call_at"] is not None
        assert len(store.history) == 1

    def test_demo_booked_with_naive_date(self, client, store, make_lead):
        """Test that a demo closes the lead"""
        lead = make_lead()
        store._leads[lead.id] = lead

        response = client.post(f"{API}/dialer/disposition", json={
            "lead_id": lead.id, "outcome": "demo_booked", "demo_date": "2026-03-10T15:00:00",
        })

        assert response.status_code == 200
        assert response.json()["new_status"] == "completed"

    @pytest.mark.parametrize("body", [
        {"outcome": "no_answer"},
        {"lead_id": "lead-1"},
        {"lead_id": "lead-1", "outcome": "hung_up"},
        {"lead_id": "lead-1", "outcome": "callback", "callback_at": "2020-01-01T09:00:00Z"},
    ])
    def test_bad_request(self, client, body):
        """Test missing or unknown fields"""
        response = client.post(f"{API}/dialer/disposition", json=body)

        assert response.status_code == 400

    def test_unknown_lead(self, client):
        """Test 404 for a lead that does not exist"""
        response = client.post(f"{API}/dialer/disposition", json={"lead_id": "missing", "outcome": "voicemail"})

        assert response.status_code == 404

    def test_caller_number_usage(self, client, store, make_lead, make_number):
        """Test that the pool number used for the call is counted"""
        lead = make_lead()
        number = make_number(calls_this_hour=19)
        store._leads[lead.id] = lead
        store._numbers[number.id] = number

        response = client.post(f"{API}/dialer/disposition", json={
            "lead_id": lead.id, "outcome": "voicemail", "caller_number_id": number.id,
        })

        assert response.status_code == 200
        updated = store._numbers[number.id]
        assert updated.calls_this_hour == 20
        assert updated.status == "cooling"


class TestQueueEndpoint:
    """Tests for GET /dialer/queue"""

    def test_queue_shape(self, client):
        """Test the empty queue payload"""
        response = client.get(f"{API}/dialer/queue")

        assert response.status_code == 200
        data = response.json()
        assert data["leads"] == []
        assert data["breakdown_by_region"] == {"ET": 0, "CT": 0, "MT": 0, "PT": 0}

    def test_region_override(self, client, store, make_lead):
        """Test forcing a region"""
        lead = make_lead(timezone="MT", state="CO")
        store._leads[lead.id] = lead

        response = client.get(f"{API}/dialer/queue", params={"timezone": "mt"})

        assert response.status_code == 200
        assert response.json()["current_region"] == "MT"
        assert [l["id"] for l in response.json()["leads"]] == [lead.id]

    def test_invalid_region(self, client):
        """Test 400 for an unknown region"""
        response = client.get(f"{API}/dialer/queue", params={"timezone": "UTC"})

        assert response.status_code == 400


class TestLeadEndpoint:
    """Tests for POST /dialer/leads"""

    def test_create_lead(self, client):
        """Test intake with region derived from state"""
        response = client.post(f"{API}/dialer/leads", json={
            "phone_number": "(512) 555-0142", "business_name": "Acme Plumbing", "state": "TX",
        })

        assert response.status_code == 201
        data = response.json()
        assert data["phone_number"] == "+15125550142"
        assert data["timezone"] == "CT"
        assert data["status"] == "queued"
        assert data["attempt_count"] == 0

    def test_duplicate_phone(self, client):
        """Test 409 for a number already in the dialer"""
        client.post(f"{API}/dialer/leads", json={"phone_number": "+15125550142"})

        response = client.post(f"{API}/dialer/leads", json={"phone_number": "512-555-0142"})

        assert response.status_code == 409

    def test_invalid_phone(self, client):
        """Test 400 for a malformed number"""
        response = client.post(f"{API}/dialer/leads", json={"phone_number": "555"})

        assert response.status_code == 400


class TestNumbersEndpoints:
    """Tests for /dialer/numbers"""

    def test_add_list_retire_reactivate(self, client):
        """Test the pool administration round"""
        created = client.post(f"{API}/dialer/numbers", json={"phone_number": "+17375550100", "state": "TX"})
        assert created.status_code == 201
        number_id = created.json()["id"]

        listed = client.get(f"{API}/dialer/numbers")
        assert [n["id"] for n in listed.json()["numbers"]] == [number_id]

        retired = client.delete(f"{API}/dialer/numbers/{number_id}")
        assert retired.json()["status"] == "retired"

        reactivated = client.post(f"{API}/dialer/numbers/{number_id}/reactivate")
        assert reactivated.json()["status"] == "active"

    def test_update_forbids_status(self, client, store, make_number):
        """Test that PATCH cannot change status"""
        number = make_number()
        store._numbers[number.id] = number

        response = client.patch(f"{API}/dialer/numbers/{number.id}", json={"status": "active"})

        assert response.status_code == 422

    def test_update_unknown(self, client):
        """Test 404 on PATCH"""
        response = client.patch(f"{API}/dialer/numbers/missing", json={"max_calls_per_hour": 5})

        assert response.status_code == 404

    def test_manual_resets(self, client, store, make_number):
        """Test the reset endpoints"""
        number = make_number(status="cooling", calls_this_hour=20, calls_today=30)
        store._numbers[number.id] = number

        hourly = client.post(f"{API}/dialer/numbers/reset-hourly")
        daily = client.post(f"{API}/dialer/numbers/reset-daily")

        assert hourly.json() == {"reset": 1}
        assert daily.json() == {"reset": 1}
        assert store._numbers[number.id].status == "active"
        assert store._numbers[number.id].calls_today == 0


class TestStatsEndpoints:
    """Tests for /calls"""

    def test_adjust_and_list(self, client):
        """Test manual counters and the daily listing"""
        adjusted = client.post(f"{API}/calls/stats", json={
            "call_date": "2026-03-04", "deals_closed": 1, "hours_dialed": 2.5,
        })
        listed = client.get(f"{API}/calls/stats", params={"from": "2026-03-01", "to": "2026-03-31"})

        assert adjusted.status_code == 200
        assert adjusted.json()["deals_closed"] == 1
        assert [row["call_date"] for row in listed.json()["stats"]] == ["2026-03-04"]

    def test_negative_adjustment(self, client):
        """Test schema-level rejection of negative counters"""
        response = client.post(f"{API}/calls/stats", json={"demos_held": -1})

        assert response.status_code == 422

    def test_rolling_bounds(self, client):
        """Test the days parameter"""
        assert client.get(f"{API}/calls/stats/rolling", params={"days": 30}).status_code == 200
        assert client.get(f"{API}/calls/stats/rolling", params={"days": 0}).status_code == 422

    def test_dashboard_after_disposition(self, client, store, make_lead):
        """Test that today's counters reflect a recorded call"""
        lead = make_lead()
        store._leads[lead.id] = lead
        client.post(f"{API}/dialer/disposition", json={"lead_id": lead.id, "outcome": "conversation"})

        data = client.get(f"{API}/calls/dashboard").json()

        assert data["today"]["total_dials"] == 1
        assert data["today"]["conversations"] == 1
        assert data["rolling7"]["days_with_data"] == 1
        assert data["hourly_breakdown"][0]["hour"] == datetime.now(timezone.utc).hour


class TestSummarizeEndpoint:
    """Tests for POST /dialer/summarize"""

    def test_without_annotator(self, client):
        """Test the unconfigured annotator"""
        response = client.post(f"{API}/dialer/summarize", json={
            "transcript": "Owner said to call back next week after the busy season.",
        })

        assert response.status_code == 200
        assert response.json()["disposition"] is None
        assert response.json()["reason"] == "No transcript annotator configured"


class TestWebhookEndpoints:
    """Tests for /webhooks/telephony"""

    def test_call_event_creates_log(self, client, store):
        """Test an initiated call"""
        response = client.post(f"{API}/webhooks/telephony/call-events", json={
            "data": {"event_type": "call.initiated", "payload": {"call_control_id": "cc-1", "to": "+15125550100"}},
        })

        assert response.status_code == 200
        assert response.json() == {"received": True, "action": "created"}
        assert "cc-1" in store._call_logs

    def test_malformed_body_still_200(self, client):
        """Test that provider retries are never triggered"""
        response = client.post(f"{API}/webhooks/telephony/call-events", json={"nope": True})

        assert response.status_code == 200
        assert response.json()["received"] is True
        assert "error" in response.json()

    def test_sms_received(self, client, store):
        """Test an inbound SMS"""
        response = client.post(f"{API}/webhooks/telephony/sms", json={
            "data": {"event_type": "message.received", "payload": {
                "id": "msg-1", "from": {"phone_number": "+15125550100"}, "text": "stop calling",
            }},
        })

        assert response.status_code == 200
        assert response.json()["action"] == "stored"
        assert len(store.sms_messages) == 1

    def test_handler_failure_still_200(self, client, store):
        """Test that store errors are reported in the body"""
        async def boom(*args, **kwargs):
            raise RuntimeError("db down")

        store.create_call_log = boom
        response = client.post(f"{API}/webhooks/telephony/call-events", json={
            "data": {"event_type": "call.initiated", "payload": {"call_control_id": "cc-2"}},
        })

        assert response.status_code == 200
        assert response.json() == {"received": True, "error": "Processing failed"}


class TestHealth:
    """Tests for health checks"""

    def test_health(self, client):
        """Test the API health endpoint"""
        response = client.get(f"{API}/health")

        assert response.status_code == 200
        assert response.json()["store"] == "InMemoryDialerStore"

    def test_root_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}
