from graph.state import IntakeState
from loguru import logger


def make_notify(dispatcher):
    """Node that sends the new-submission notification without failing the intake."""

    def notify(state: IntakeState) -> IntakeState:
        result = dispatcher.dispatch(state["lead_id"], "new_submission", best_effort=True)
        state["notification"] = result.to_dict()
        if not result.success:
            state.setdefault("errors", []).append(f"notification_failed: {result.error}")
            logger.warning(f"Submission {state['lead_id']} stored but notification failed")
        return state

    return notify
