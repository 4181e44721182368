from langgraph.graph import StateGraph, START, END

from graph.state import IntakeState, CallTurnState
from graph.nodes.capture import capture
from graph.nodes.classify import classify
from graph.nodes.notify import make_notify
from graph.nodes.persist import make_persist
from graph.nodes.voice import (
    make_handoff,
    make_interpret,
    make_record,
    make_respond,
    needs_handoff,
)


def build_intake_workflow(leads, dispatcher):
    """capture -> persist -> classify -> notify"""
    workflow = StateGraph(IntakeState)

    workflow.add_node("capture", capture)
    workflow.add_node("persist", make_persist(leads))
    workflow.add_node("classify", classify)
    workflow.add_node("notify", make_notify(dispatcher))

    workflow.add_edge(START, "capture")
    workflow.add_edge("capture", "persist")
    workflow.add_edge("persist", "classify")
    workflow.add_edge("classify", "notify")
    workflow.add_edge("notify", END)

    return workflow.compile()


def build_call_turn_workflow(llm, calls, agent_number: str, scheduling_number: str):
    """interpret -> record -> (handoff | respond)"""
    workflow = StateGraph(CallTurnState)

    workflow.add_node("interpret", make_interpret(llm, calls))
    workflow.add_node("record", make_record(calls))
    workflow.add_node("handoff", make_handoff(calls, agent_number))
    workflow.add_node("respond", make_respond(scheduling_number))

    workflow.add_edge(START, "interpret")
    workflow.add_edge("interpret", "record")
    workflow.add_conditional_edges(
        "record",
        needs_handoff,
        {
            "handoff": "handoff",
            "respond": "respond"
        }
    )
    workflow.add_edge("handoff", END)
    workflow.add_edge("respond", END)

    return workflow.compile()
