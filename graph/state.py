from typing import TypedDict, Optional, List, Dict, Any

from domain.lead import Lead
from tools.llm import Interpretation


class IntakeState(TypedDict, total=False):
    """State shape for the questionnaire intake workflow."""
    raw: Dict[str, Any]              # submitted JSON payload
    user_id: str                     # authenticated caller
    answers: Dict[str, Any]          # cleaned questionnaire fields
    lead: Lead                       # stored row
    lead_id: str
    urgency: str                     # "high" | "medium" | "low"
    notification: Dict[str, Any]     # DispatchResult.to_dict()
    errors: List[str]


class CallTurnState(TypedDict, total=False):
    """State shape for one caller utterance on a live call."""
    call_sid: str
    speech: str
    speech_confidence: float
    call_id: Optional[str]
    interpretation: Interpretation
    twiml: str
    errors: List[str]
