from graph.state import IntakeState
from domain.urgency import classify_urgency
from loguru import logger


def classify(state: IntakeState) -> IntakeState:
    """Attach the triage urgency of the stored lead."""
    lead = state.get("lead")
    urgency = classify_urgency(lead if lead is not None else state.get("answers"))
    state["urgency"] = urgency.value
    logger.info(f"Lead {state.get('lead_id', 'unknown')} classified as {urgency.value} urgency")
    return state
