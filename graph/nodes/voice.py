from graph.state import CallTurnState
from tools import twiml
from loguru import logger

HANDOFF_SUMMARY = "Caller requested human assistance or AI determined handoff necessary"


def make_interpret(llm, calls):
    """Node that runs the caller's speech through the language model."""

    def interpret(state: CallTurnState) -> CallTurnState:
        state["call_id"] = calls.get_call_id(state["call_sid"])
        interpretation = llm.interpret_speech(state["speech"])
        state["interpretation"] = interpretation
        logger.info(
            f"Call {state['call_sid']}: intent={interpretation.intent_name} "
            f"confidence={interpretation.intent_confidence} handoff={interpretation.requires_handoff}"
        )
        return state

    return interpret


def make_record(calls):
    """Node that stores both sides of the exchange and the detected intent."""

    def record(state: CallTurnState) -> CallTurnState:
        call_id = state.get("call_id")
        interpretation = state["interpretation"]

        calls.add_transcript(call_id, "caller", state["speech"], confidence=state.get("speech_confidence", 0.0))
        calls.add_transcript(call_id, "ai", interpretation.message)

        if interpretation.intent_name:
            calls.add_intent(
                call_id,
                interpretation.intent_name,
                interpretation.intent_confidence,
                interpretation.entities,
                interpretation.message,
            )
        return state

    return record


def needs_handoff(state: CallTurnState) -> str:
    return "handoff" if state["interpretation"].requires_handoff else "respond"


def make_handoff(calls, agent_number: str):
    """Node that records the transfer and dials a human agent."""

    def handoff(state: CallTurnState) -> CallTurnState:
        reason = state["interpretation"].handoff_reason or "Handoff requested"
        calls.add_handoff(state.get("call_id"), reason, HANDOFF_SUMMARY)
        calls.update_call(state["call_sid"], {
            "call_status": "transferred",
            "requires_human_followup": True,
        })
        logger.info(f"Call {state['call_sid']} handed to an agent: {reason}")
        state["twiml"] = twiml.handoff(agent_number)
        return state

    return handoff


def make_respond(scheduling_number: str):
    def respond(state: CallTurnState) -> CallTurnState:
        interpretation = state["interpretation"]
        state["twiml"] = twiml.conversation(interpretation.message, interpretation.next_action, scheduling_number)
        return state

    return respond
