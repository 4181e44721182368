import json
from dataclasses import dataclass, field
from typing import Dict, Any, Optional
from loguru import logger

UNAVAILABLE_MESSAGE = (
    "I apologize, but our AI system is currently unavailable. "
    "Let me connect you with one of our specialists."
)
ERROR_MESSAGE = (
    "I apologize, but I'm having trouble understanding. Let me connect you with "
    "one of our foreclosure specialists who can better assist you."
)

INTENTS = (
    "foreclosure_help",
    "case_status",
    "schedule_appointment",
    "financial_hardship",
    "property_valuation",
    "legal_questions",
    "speak_to_agent",
)


@dataclass
class Interpretation:
    """What the assistant decided to say and do for one caller utterance."""
    message: str
    intent_name: Optional[str] = None
    intent_confidence: float = 0.0
    entities: Dict[str, Any] = field(default_factory=dict)
    requires_handoff: bool = False
    handoff_reason: Optional[str] = None
    next_action: Optional[str] = None

    @classmethod
    def handoff(cls, message: str, reason: str) -> "Interpretation":
        return cls(message=message, requires_handoff=True, handoff_reason=reason)


class LLMClient:
    """LLM client that classifies caller speech for the voice assistant."""

    def __init__(self, api_key: Optional[str], model: str = "gpt-4-turbo-preview",
                 timeout: float = 20.0, client: Any = None):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

        if not self.api_key and client is None:
            logger.warning("No OpenAI API key provided, voice calls will be handed to agents")

    def _get_client(self):
        if self._client is None:
            from openai import OpenAI
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def interpret_speech(self, speech: str) -> Interpretation:
        """
        Classify a caller utterance and draft the spoken reply.

        Args:
            speech: Caller's transcribed speech

        Returns:
            Interpretation; on any failure a fixed apology with requires_handoff=True
        """
        if not self.api_key and self._client is None:
            return Interpretation.handoff(UNAVAILABLE_MESSAGE, "AI system unavailable")

        try:
            response = self._get_client().chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": self._get_voice_rubric()},
                    {"role": "user", "content": speech}
                ],
                temperature=0.7,
                max_tokens=500
            )
            content = response.choices[0].message.content
        except Exception as e:
            logger.error(f"Error processing speech with LLM: {e}")
            return Interpretation.handoff(ERROR_MESSAGE, "AI processing error")

        return self._parse_response(content)

    def _get_voice_rubric(self) -> str:
        return f"""You are an AI assistant for RepMotivatedSeller, a foreclosure assistance company.

Your role is to:
1. Help callers with foreclosure-related questions
2. Collect basic information for case assessment
3. Schedule appointments with specialists
4. Provide general information about foreclosure processes
5. Identify when to transfer to human agents

Available intents: {", ".join(INTENTS)}
Legal questions and direct requests for a person always require a handoff.

Respond with a JSON object containing:
{{
  "message": "Your response to the caller",
  "intent": {{"name": "detected_intent", "confidence": 0.95, "entities": {{"key": "value"}}}},
  "requiresHandoff": false,
  "handoffReason": "reason if handoff needed",
  "nextAction": "continue_conversation | schedule_appointment | end_call"
}}

Keep responses conversational, empathetic, and under 50 words."""

    def _parse_response(self, content: Optional[str]) -> Interpretation:
        """Parse the model reply; plain text becomes a general-inquiry answer."""
        text = (content or "").strip()
        if not text:
            logger.warning("LLM returned an empty reply")
            return Interpretation.handoff(ERROR_MESSAGE, "AI processing error")

        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("Could not parse LLM reply as JSON, using it as the spoken message")
            return Interpretation(
                message=text,
                intent_name="general_inquiry",
                intent_confidence=0.5,
                next_action="continue_conversation",
            )

        if not isinstance(data, dict) or not str(data.get("message") or "").strip():
            logger.warning("LLM reply has no message, handing off")
            return Interpretation.handoff(ERROR_MESSAGE, "AI processing error")

        intent = data.get("intent") if isinstance(data.get("intent"), dict) else {}
        try:
            confidence = float(intent.get("confidence", 0.0))
        except (TypeError, ValueError):
            confidence = 0.0
        entities = intent.get("entities") if isinstance(intent.get("entities"), dict) else {}

        return Interpretation(
            message=str(data["message"]).strip(),
            intent_name=intent.get("name"),
            intent_confidence=confidence,
            entities=entities,
            requires_handoff=bool(data.get("requiresHandoff")),
            handoff_reason=data.get("handoffReason"),
            next_action=data.get("nextAction"),
        )
