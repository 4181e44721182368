from graph.state import IntakeState
from domain.lead import LeadStatus
from loguru import logger


def make_persist(leads):
    """Node that stores the captured answers as one new lead row."""

    def persist(state: IntakeState) -> IntakeState:
        row = dict(state["answers"])
        row["user_id"] = state.get("user_id")
        row["status"] = LeadStatus.SUBMITTED.value

        # Single insert; a StoreError stops the workflow before any notification
        lead = leads.insert(row)

        state["lead"] = lead
        state["lead_id"] = lead.id
        logger.info(f"Stored foreclosure submission {lead.id}")
        return state

    return persist
