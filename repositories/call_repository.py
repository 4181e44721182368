"""
Persistence for the telephony tables: calls, transcripts, intents, handoffs.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from repositories.client import execute

CALLS_TABLE = "ai_calls"
TRANSCRIPTS_TABLE = "call_transcripts"
INTENTS_TABLE = "call_intents"
HANDOFFS_TABLE = "agent_handoffs"


class CallRepository:
    def __init__(self, client: Any):
        self.client = client

    # Writes used by the voice webhook

    def create_call(self, call_sid: str, phone_number: Optional[str], status: str = "in-progress",
                    priority: str = "medium") -> Optional[Dict[str, Any]]:
        rows = execute(
            self.client.table(CALLS_TABLE).insert({
                "call_sid": call_sid,
                "phone_number": phone_number,
                "call_status": status,
                "priority_level": priority,
            }),
            "create call record",
        )
        return rows[0] if rows else None

    def get_call_id(self, call_sid: str) -> Optional[str]:
        rows = execute(
            self.client.table(CALLS_TABLE).select("id").eq("call_sid", call_sid).limit(1),
            "look up call",
        )
        return str(rows[0]["id"]) if rows else None

    def update_call(self, call_sid: str, changes: Dict[str, Any]) -> None:
        execute(
            self.client.table(CALLS_TABLE).update(changes).eq("call_sid", call_sid),
            "update call",
        )

    def complete_call(self, call_sid: str) -> None:
        self.update_call(call_sid, {
            "call_status": "completed",
            "completed_at": datetime.now(timezone.utc).isoformat(),
        })

    def add_transcript(self, call_id: Optional[str], speaker: str, message: str,
                       confidence: Optional[float] = None, offset: int = 0) -> None:
        row = {
            "call_id": call_id,
            "speaker": speaker,
            "message": message,
            "timestamp_offset": offset,
        }
        if confidence is not None:
            row["confidence_score"] = confidence
        execute(self.client.table(TRANSCRIPTS_TABLE).insert(row), "store transcript")

    def add_intent(self, call_id: Optional[str], name: str, confidence: float,
                   entities: Dict[str, Any], response: str) -> None:
        execute(
            self.client.table(INTENTS_TABLE).insert({
                "call_id": call_id,
                "intent_name": name,
                "confidence_score": confidence,
                "entities": entities,
                "response_provided": response,
            }),
            "store intent",
        )

    def add_handoff(self, call_id: Optional[str], reason: str, summary: str) -> None:
        execute(
            self.client.table(HANDOFFS_TABLE).insert({
                "call_id": call_id,
                "reason": reason,
                "ai_summary": summary,
            }),
            "store handoff",
        )

    # Reads used by call analytics

    def list_calls(self) -> List[Dict[str, Any]]:
        return execute(
            self.client.table(CALLS_TABLE)
            .select("id, call_sid, call_status, priority_level, created_at, call_duration")
            .order("created_at", desc=True),
            "list calls",
        )

    def list_intents(self) -> List[Dict[str, Any]]:
        return execute(
            self.client.table(INTENTS_TABLE).select("intent_name, confidence_score, fulfilled, created_at"),
            "list intents",
        )

    def list_handoffs(self) -> List[Dict[str, Any]]:
        return execute(
            self.client.table(HANDOFFS_TABLE).select("*"),
            "list handoffs",
        )

    def get_call(self, call_id: str) -> Optional[Dict[str, Any]]:
        rows = execute(
            self.client.table(CALLS_TABLE).select("*").eq("id", call_id).limit(1),
            "fetch call",
        )
        return rows[0] if rows else None

    def transcript_for(self, call_id: str) -> List[Dict[str, Any]]:
        return execute(
            self.client.table(TRANSCRIPTS_TABLE).select("*").eq("call_id", call_id).order("timestamp_offset"),
            "fetch transcript",
        )

    def intents_for(self, call_id: str) -> List[Dict[str, Any]]:
        return execute(
            self.client.table(INTENTS_TABLE).select("*").eq("call_id", call_id).order("created_at"),
            "fetch intents",
        )

    def handoff_for(self, call_id: str) -> Optional[Dict[str, Any]]:
        rows = execute(
            self.client.table(HANDOFFS_TABLE).select("*").eq("call_id", call_id).limit(1),
            "fetch handoff",
        )
        return rows[0] if rows else None
