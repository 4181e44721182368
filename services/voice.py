"""
Telephony webhook handling.

The provider's CallStatus drives everything; no transitions are validated
and any status may follow any other.
"""

from typing import Any, Mapping

from loguru import logger

from domain.errors import StoreError
from tools import twiml

HOLD_MESSAGE = "Thank you for calling RepMotivatedSeller. Please hold while we connect you."
TECHNICAL_DIFFICULTIES = (
    "We apologize, but we are experiencing technical difficulties. "
    "Please try calling back in a few minutes."
)
REPEAT_PROMPT = "I didn't catch that. Could you please repeat what you need help with?"


def _confidence(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


class VoiceCallHandler:
    def __init__(self, calls, turn_workflow, agent_number: str):
        self.calls = calls
        self.turn_workflow = turn_workflow
        self.agent_number = agent_number

    def handle(self, params: Mapping[str, Any]) -> str:
        """Answer one provider webhook; returns a TwiML document (or "OK" on completion)."""
        call_sid = params.get("CallSid") or ""
        status = params.get("CallStatus") or ""
        logger.info(f"Voice webhook {call_sid}: {status}")

        try:
            if status == "ringing":
                return self._incoming(call_sid, params.get("From"))
            if status == "in-progress":
                return self._in_progress(call_sid, params.get("SpeechResult"), params.get("Confidence"))
            if status == "completed":
                self.calls.complete_call(call_sid)
                return "OK"
            return twiml.say(HOLD_MESSAGE)
        except Exception as e:
            logger.error(f"Error handling voice request {call_sid}: {e}")
            return twiml.say(TECHNICAL_DIFFICULTIES)

    def _incoming(self, call_sid: str, caller: Any) -> str:
        try:
            self.calls.create_call(call_sid, caller, status="in-progress", priority="medium")
        except StoreError as e:
            # The caller still gets the greeting
            logger.error(f"Error creating call record for {call_sid}: {e}")
        return twiml.greeting(self.agent_number)

    def _in_progress(self, call_sid: str, speech: Any, confidence: Any) -> str:
        speech = (speech or "").strip()
        if not speech:
            return twiml.say(REPEAT_PROMPT)

        result = self.turn_workflow.invoke({
            "call_sid": call_sid,
            "speech": speech,
            "speech_confidence": _confidence(confidence),
            "errors": [],
        })
        return result["twiml"]
