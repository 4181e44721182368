"""In-memory stand-ins for the store, channels and model used across the tests."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from config import Settings
from context import PipelineContext
from domain.errors import AuthenticationError
from domain.lead import Lead
from tools.idempotency import Idem
from tools.llm import Interpretation

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def fixed_clock():
    return NOW


def make_settings(**overrides) -> Settings:
    values = {
        "redis_url": None,
        "log_file": None,
        "site_url": "https://example.org",
        "mailerlite_api_key": "ml-test",
        "crm_type": "none",
    }
    values.update(overrides)
    return Settings(**values)


def make_lead(**overrides) -> Lead:
    values = {
        "id": "lead-1",
        "created_at": NOW - timedelta(days=2),
        "contact_name": "Jane Doe",
        "contact_email": "jane@example.com",
        "contact_phone": "555-0100",
        "situation_length": "5 years",
        "payment_status": "behind",
        "nod": "no",
        "missed_payments": 0,
    }
    values.update(overrides)
    return Lead(**values)


class FakeLeadRepository:
    def __init__(self, leads: Optional[List[Lead]] = None):
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.inserted: List[Dict[str, Any]] = []
        for lead in leads or []:
            self.rows[lead.id] = {
                "id": lead.id,
                "created_at": lead.created_at.isoformat(),
                "status": lead.status,
                **lead.answers(),
            }

    def insert(self, row):
        self.inserted.append(dict(row))
        stored = {"id": str(uuid.uuid4()), "created_at": NOW.isoformat(), **row}
        self.rows[stored["id"]] = stored
        return Lead.from_row(stored)

    def get(self, lead_id):
        row = self.rows.get(lead_id)
        return Lead.from_row(row) if row else None

    def list_by_status(self, statuses):
        statuses = list(statuses)
        return [Lead.from_row(r) for r in self.rows.values() if r.get("status") in statuses]

    def update(self, lead_id, changes):
        if lead_id not in self.rows:
            return None
        self.rows[lead_id].update({k: v for k, v in changes.items() if k not in ("id", "created_at")})
        return Lead.from_row(self.rows[lead_id])


class FakeCallRepository:
    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.transcripts: List[Dict[str, Any]] = []
        self.intents: List[Dict[str, Any]] = []
        self.handoffs: List[Dict[str, Any]] = []

    def create_call(self, call_sid, phone_number, status="in-progress", priority="medium"):
        row = {
            "id": f"call-{len(self.calls) + 1}",
            "call_sid": call_sid,
            "phone_number": phone_number,
            "call_status": status,
            "priority_level": priority,
            "created_at": NOW.isoformat(),
        }
        self.calls.append(row)
        return row

    def _by_sid(self, call_sid):
        return next((c for c in self.calls if c["call_sid"] == call_sid), None)

    def get_call_id(self, call_sid):
        call = self._by_sid(call_sid)
        return call["id"] if call else None

    def update_call(self, call_sid, changes):
        call = self._by_sid(call_sid)
        if call:
            call.update(changes)

    def complete_call(self, call_sid):
        self.update_call(call_sid, {"call_status": "completed", "completed_at": NOW.isoformat()})

    def add_transcript(self, call_id, speaker, message, confidence=None, offset=0):
        self.transcripts.append({
            "call_id": call_id, "speaker": speaker, "message": message,
            "confidence_score": confidence, "timestamp_offset": offset,
        })

    def add_intent(self, call_id, name, confidence, entities, response):
        self.intents.append({
            "call_id": call_id, "intent_name": name, "confidence_score": confidence,
            "entities": entities, "response_provided": response,
            "fulfilled": False, "created_at": NOW.isoformat(),
        })

    def add_handoff(self, call_id, reason, summary):
        self.handoffs.append({
            "id": f"handoff-{len(self.handoffs) + 1}", "call_id": call_id,
            "reason": reason, "ai_summary": summary,
        })

    def list_calls(self):
        return list(reversed(self.calls))

    def list_intents(self):
        return list(self.intents)

    def list_handoffs(self):
        return list(self.handoffs)

    def get_call(self, call_id):
        return next((c for c in self.calls if c["id"] == call_id), None)

    def transcript_for(self, call_id):
        rows = [t for t in self.transcripts if t["call_id"] == call_id]
        return sorted(rows, key=lambda t: t["timestamp_offset"])

    def intents_for(self, call_id):
        return [i for i in self.intents if i["call_id"] == call_id]

    def handoff_for(self, call_id):
        return next((h for h in self.handoffs if h["call_id"] == call_id), None)


class FakeVoiceUsageRepository:
    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None):
        self.rows = list(rows or [])
        self.queries: List[Any] = []

    def insert(self, row):
        stored = {"id": len(self.rows) + 1, "created_at": NOW.isoformat(), **row}
        self.rows.append(stored)
        return stored

    def list_for_user(self, user_id, since=None):
        self.queries.append((user_id, since))
        return [
            r for r in self.rows
            if r["user_id"] == user_id and (since is None or r["created_at"] >= since.isoformat())
        ]


class StubMailer:
    def __init__(self, fail_with: Optional[Exception] = None):
        self.fail_with = fail_with
        self.sent: List[Dict[str, Any]] = []
        self.groups: List[Dict[str, Any]] = []
        self.automations: List[Dict[str, Any]] = []

    @property
    def recipients(self):
        return [m["to"] for m in self.sent]

    def send_email(self, to, subject, html, tags=None):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append({"to": to, "subject": subject, "html": html, "tags": tags or []})
        return f"msg-{len(self.sent)}"

    def add_to_group(self, email, group_name, fields):
        if not email:
            return False
        self.groups.append({"email": email, "group": group_name, "fields": fields})
        return True

    def trigger_automation(self, email, automation, fields):
        self.automations.append({"email": email, "automation": automation, "fields": fields})
        return True


class StubCRM:
    name = "stub"

    def __init__(self, fail_with: Optional[Exception] = None):
        self.fail_with = fail_with
        self.events: List[Dict[str, Any]] = []

    def log_event(self, lead, event_type, urgency, custom_data=None):
        if self.fail_with is not None:
            raise self.fail_with
        self.events.append({"lead_id": lead.id, "event_type": event_type, "urgency": urgency,
                            "custom_data": custom_data})
        return "crm-1"


class StubLLM:
    def __init__(self, interpretation: Interpretation):
        self.interpretation = interpretation
        self.heard: List[str] = []

    def interpret_speech(self, speech):
        self.heard.append(speech)
        return self.interpretation


class StubAuthenticator:
    def __init__(self, tokens: Optional[Dict[str, str]] = None):
        self.tokens = tokens or {"good-token": "user-1"}

    def user_id(self, authorization):
        token = (authorization or "").replace("Bearer ", "", 1)
        if token not in self.tokens:
            raise AuthenticationError("User not authenticated")
        return self.tokens[token]


def make_context(leads=None, mailer=None, crm=None, llm=None, calls=None, usage=None,
                 settings=None) -> PipelineContext:
    return PipelineContext(
        settings=settings or make_settings(),
        leads=leads if leads is not None else FakeLeadRepository(),
        calls=calls if calls is not None else FakeCallRepository(),
        voice_usage_repository=usage if usage is not None else FakeVoiceUsageRepository(),
        authenticator=StubAuthenticator(),
        mailer=mailer if mailer is not None else StubMailer(),
        crm=crm if crm is not None else StubCRM(),
        llm=llm if llm is not None else StubLLM(Interpretation(message="How can I help?")),
        idem=Idem(None),
        clock=fixed_clock,
    )
