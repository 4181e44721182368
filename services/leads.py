from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

from loguru import logger

from domain.errors import InputError, LeadNotFound
from domain.lead import Lead, utc_now
from domain.urgency import classify_urgency

SUCCESS_MESSAGE = "Foreclosure questionnaire submitted successfully"
EDITABLE_FIELDS = ("status", "notes", "assigned_to")


def lead_payload(lead: Lead) -> Dict[str, Any]:
    """JSON view of a stored lead, with its computed urgency."""
    return {
        "id": lead.id,
        "user_id": lead.user_id,
        "status": lead.status,
        "urgency": classify_urgency(lead).value,
        **lead.answers(),
        "notes": lead.notes,
        "assigned_to": lead.assigned_to,
        "created_at": lead.created_at.isoformat(),
        "updated_at": lead.updated_at.isoformat() if lead.updated_at else None,
    }


class IntakeService:
    """Authenticated questionnaire submission, guarded by the optional event_id."""

    def __init__(self, authenticator, workflow, idem):
        self.authenticator = authenticator
        self.workflow = workflow
        self.idem = idem

    def submit(self, authorization: Optional[str], payload: Any) -> Dict[str, Any]:
        user_id = self.authenticator.user_id(authorization)
        if not isinstance(payload, dict):
            raise InputError("Submission payload must be a JSON object")

        event_id = payload.get("event_id")
        if event_id and not self.idem.check_and_set(str(event_id)):
            logger.warning(f"Duplicate submission ignored: {event_id}")
            return {"success": True, "duplicate": True}

        try:
            result = self.workflow.invoke({"raw": payload, "user_id": user_id, "errors": []})
        except Exception:
            if event_id:
                self.idem.release(str(event_id))
            raise

        return {
            "success": True,
            "id": result["lead_id"],
            "urgency": result["urgency"],
            "message": SUCCESS_MESSAGE,
        }


class LeadAdmin:
    """Administrator view of a lead: fetch it, move its status, annotate it."""

    def __init__(self, leads, dispatcher, clock: Callable[[], datetime] = utc_now):
        self.leads = leads
        self.dispatcher = dispatcher
        self.clock = clock

    def get(self, lead_id: str) -> Lead:
        lead = self.leads.get(lead_id)
        if lead is None:
            raise LeadNotFound(lead_id)
        return lead

    def update(self, lead_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
        unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
        if unknown:
            raise InputError(f"Fields cannot be updated: {', '.join(unknown)}")
        if not changes:
            raise InputError("No changes supplied")

        lead = self.get(lead_id)
        now = self.clock()
        payload = {k: changes[k] for k in ("notes", "assigned_to") if k in changes}

        status_changed = "status" in changes and changes["status"] != lead.status
        if "status" in changes:
            # Raises InvalidStatusTransition for anything but a forward move
            payload["status"] = lead.with_status(changes["status"], now).status
        payload["updated_at"] = now.isoformat()

        updated = self.leads.update(lead_id, payload)
        if updated is None:
            raise LeadNotFound(lead_id)
        logger.info(f"Lead {lead_id} updated: {', '.join(sorted(changes))}")

        notification = None
        if status_changed:
            notification = self.dispatcher.dispatch(lead_id, "status_update", best_effort=True).to_dict()

        return {"lead": lead_payload(updated), "notification": notification}
