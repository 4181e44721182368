import asyncio
import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient

from app import app, get_context
from domain.errors import ChannelUnavailable

from fakes import (
    NOW,
    FakeLeadRepository,
    StubMailer,
    make_context,
    make_lead,
)

AUTH = {"Authorization": "Bearer good-token"}

SUBMISSION = {
    "contact_name": "Jane Doe",
    "contact_email": "jane@example.com",
    "situation_length": "5 years",
    "payment_status": "behind",
    "nod": "yes",
    "missed_payments": "1",
}


def _on_event_loop():
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def _recording(calls, fn):
    """Wrap a service call, recording whether it ran on the event loop thread."""
    def wrapper(*args, **kwargs):
        calls.append(_on_event_loop())
        return fn(*args, **kwargs)
    return wrapper


class TestAPI:
    """HTTP surface with the pipeline context swapped for in-memory fakes."""

    def setup_method(self):
        self.leads = FakeLeadRepository([make_lead(status="submitted")])
        self.mailer = StubMailer()
        self.ctx = make_context(leads=self.leads, mailer=self.mailer)
        app.dependency_overrides[get_context] = lambda: self.ctx
        self.client = TestClient(app)

    def teardown_method(self):
        app.dependency_overrides.clear()

    def test_health(self):
        response = self.client.get("/health")

        assert response.status_code == 200
        assert response.json()["services"]["redis"] == "disconnected"

    def test_submit_foreclosure(self):
        response = self.client.post("/webhooks/foreclosure", json=SUBMISSION, headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["urgency"] == "high"
        assert self.leads.get(data["id"]).missed_payments == 1
        assert self.ctx.settings.urgent_email in self.mailer.recipients

    def test_submit_requires_auth(self):
        response = self.client.post("/webhooks/foreclosure", json=SUBMISSION)

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "User not authenticated"}

    def test_submit_missing_fields(self):
        response = self.client.post("/webhooks/foreclosure", json={"contact_name": "Jane"}, headers=AUTH)

        assert response.status_code == 400
        assert "Missing required fields" in response.json()["error"]

    def test_submit_invalid_json(self):
        response = self.client.post(
            "/webhooks/foreclosure", content="not json",
            headers={**AUTH, "Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_submit_succeeds_when_email_is_down(self):
        self.mailer.fail_with = ChannelUnavailable("mailerlite", "unreachable")

        response = self.client.post("/webhooks/foreclosure", json=SUBMISSION, headers=AUTH)

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_duplicate_event(self):
        payload = dict(SUBMISSION, event_id="evt-9")

        self.client.post("/webhooks/foreclosure", json=payload, headers=AUTH)
        response = self.client.post("/webhooks/foreclosure", json=payload, headers=AUTH)

        assert response.json() == {"success": True, "duplicate": True}

    def test_notification_endpoint(self):
        response = self.client.post("/notifications", json={"lead_id": "lead-1", "type": "urgent_case"})

        assert response.status_code == 200
        assert len(response.json()["recipients"]) == 3

    def test_notification_unknown_lead(self):
        response = self.client.post("/notifications", json={"lead_id": "nope", "type": "new_submission"})

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_notification_surfaces_channel_failure(self):
        self.mailer.fail_with = ChannelUnavailable("mailerlite", "MAILERLITE_API_KEY not configured")

        response = self.client.post("/notifications", json={"lead_id": "lead-1", "type": "new_submission"})

        assert response.status_code == 502
        assert "MAILERLITE_API_KEY" in response.json()["error"]

    def test_notification_rejects_non_integer_days_since(self):
        response = self.client.post("/notifications", json={
            "lead_id": "lead-1", "type": "follow_up_reminder", "custom_data": {"days_since": "soon"},
        })

        assert response.status_code == 400
        assert "days_since" in response.json()["error"]
        assert self.mailer.sent == []

    def test_blocking_calls_run_off_the_event_loop(self):
        calls = []
        self.ctx.intake.submit = _recording(calls, self.ctx.intake.submit)
        self.ctx.dispatcher.dispatch = _recording(calls, self.ctx.dispatcher.dispatch)
        self.ctx.voice.handle = _recording(calls, self.ctx.voice.handle)
        self.ctx.lead_admin.update = _recording(calls, self.ctx.lead_admin.update)
        self.ctx.voice_usage.log = _recording(calls, self.ctx.voice_usage.log)

        self.client.post("/webhooks/foreclosure", json=SUBMISSION, headers=AUTH)
        self.client.post("/notifications", json={"lead_id": "lead-1", "type": "urgent_case"})
        self.client.post("/webhooks/voice", data={"CallSid": "CA1", "CallStatus": "completed"})
        self.client.patch("/admin/leads/lead-1", json={"notes": "Left voicemail"})
        self.client.post("/voice-usage", json={"text": "hi", "voice": "alloy", "model": "tts-1", "tier": "pro"}, headers=AUTH)

        assert len(calls) >= 5
        assert not any(calls)

    def test_notification_requires_type(self):
        response = self.client.post("/notifications", json={"lead_id": "lead-1"})
        assert response.status_code == 400

    def test_follow_up_job(self):
        response = self.client.post("/jobs/follow-ups")

        assert response.status_code == 200
        assert response.json()["processed"] == 0

    def test_admin_get_lead(self):
        response = self.client.get("/admin/leads/lead-1")

        assert response.status_code == 200
        lead = response.json()["lead"]
        assert lead["id"] == "lead-1"
        assert lead["urgency"] == "low"

    def test_admin_get_missing_lead(self):
        assert self.client.get("/admin/leads/missing").status_code == 404

    def test_admin_status_change_sends_update(self):
        response = self.client.patch("/admin/leads/lead-1", json={"status": "reviewed", "notes": "Called twice"})

        assert response.status_code == 200
        data = response.json()
        assert data["lead"]["status"] == "reviewed"
        assert data["lead"]["notes"] == "Called twice"
        assert data["notification"]["success"] is True
        assert self.mailer.recipients == ["jane@example.com"]

    def test_admin_backward_status_rejected(self):
        self.client.patch("/admin/leads/lead-1", json={"status": "contacted"})

        response = self.client.patch("/admin/leads/lead-1", json={"status": "reviewed"})

        assert response.status_code == 409
        assert self.leads.get("lead-1").status == "contacted"

    def test_admin_notes_only_sends_nothing(self):
        response = self.client.patch("/admin/leads/lead-1", json={"assigned_to": "agent-7"})

        assert response.status_code == 200
        assert response.json()["notification"] is None
        assert self.mailer.sent == []

    def test_admin_rejects_immutable_fields(self):
        response = self.client.patch("/admin/leads/lead-1", json={"created_at": NOW.isoformat()})
        assert response.status_code == 400

    def test_voice_webhook_ringing(self):
        response = self.client.post("/webhooks/voice", data={"CallSid": "CA1", "From": "+1555", "CallStatus": "ringing"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/xml")
        assert "<Gather" in response.text

    def test_voice_webhook_completed(self):
        response = self.client.post("/webhooks/voice", data={"CallSid": "CA1", "CallStatus": "completed"})

        assert response.text == "OK"

    def test_voice_usage(self):
        response = self.client.post(
            "/voice-usage", json={"text": "hello", "voice": "alloy", "model": "tts-1", "tier": "free"}, headers=AUTH,
        )
        assert response.status_code == 200
        assert response.json()["usage"]["text_length"] == 5

        summary = self.client.get("/voice-usage/summary?timeframe=all", headers=AUTH).json()["summary"]
        assert summary["totalCharacters"] == 5

    def test_voice_usage_requires_auth(self):
        response = self.client.post("/voice-usage", json={"text": "hello"})
        assert response.status_code == 401

    def test_call_analytics(self):
        response = self.client.get("/analytics/calls")

        assert response.status_code == 200
        assert response.json()["overview"]["totalCalls"] == 0

    def test_call_analytics_invalid_action(self):
        assert self.client.get("/analytics/calls?action=nope").status_code == 400

    def test_unexpected_error_is_500(self):
        self.ctx.analytics.run = MagicMock(side_effect=RuntimeError("boom"))
        client = TestClient(app, raise_server_exceptions=False)

        response = client.get("/analytics/calls")

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Internal server error"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
