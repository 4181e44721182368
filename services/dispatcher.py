"""
Notification dispatcher.

Loads a lead, renders the template for the event and fans it out to the
delivery channels for that event. After delivery the event is audited to the
configured CRM and the follow-up reminder dates are computed.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from loguru import logger

from config import Settings
from domain.errors import InputError, LeadNotFound
from domain.lead import Lead, utc_now
from domain.urgency import Urgency, classify_urgency
from services import templates

NEW_LEADS_GROUP = "new_leads"
URGENT_CASES_GROUP = "urgent_cases"
WELCOME_AUTOMATION = "welcome_sequence"


class EventType(str, Enum):
    NEW_SUBMISSION = "new_submission"
    STATUS_UPDATE = "status_update"
    URGENT_CASE = "urgent_case"
    FOLLOW_UP_REMINDER = "follow_up_reminder"
    WELCOME_SEQUENCE = "welcome_sequence"


@dataclass
class Delivery:
    channel: str
    recipient: str
    subject: Optional[str] = None
    message_id: Optional[str] = None


@dataclass
class DispatchResult:
    lead_id: str
    event_type: str
    success: bool = True
    urgency: Optional[str] = None
    deliveries: List[Delivery] = field(default_factory=list)
    list_groups: List[str] = field(default_factory=list)
    automation_triggered: bool = False
    crm_record_id: Optional[str] = None
    reminders: List[datetime] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def recipients(self) -> List[str]:
        return [d.recipient for d in self.deliveries]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "lead_id": self.lead_id,
            "type": self.event_type,
            "urgency": self.urgency,
            "recipients": self.recipients,
            "list_groups": self.list_groups,
            "automation_triggered": self.automation_triggered,
            "crm_record_id": self.crm_record_id,
            "reminders": [r.isoformat() for r in self.reminders],
            "error": self.error,
        }


def reminder_schedule(created_at: datetime, days: Iterable[int]) -> List[datetime]:
    """Dates at which follow-up reminders fall due for a lead created at `created_at`."""
    return [created_at + timedelta(days=d) for d in days]


def subscriber_fields(lead: Lead, urgency: str) -> Dict[str, Any]:
    """Custom fields stored on the mailing-list subscriber."""
    return {
        "name": lead.contact_name,
        "phone": lead.contact_phone,
        "home_value": lead.home_value,
        "mortgage_balance": lead.mortgage_balance,
        "lender": lead.lender,
        "missed_payments": lead.missed_payments,
        "urgency_level": urgency,
        "submission_date": lead.created_at.isoformat(),
        "property_type": lead.property_type,
        "nod_received": "Yes" if lead.nod_received else "No",
    }


class NotificationDispatcher:
    def __init__(self, leads, mailer, crm, settings: Settings,
                 clock: Callable[[], datetime] = utc_now):
        self.leads = leads
        self.mailer = mailer
        self.crm = crm
        self.settings = settings
        self.clock = clock

    def dispatch(self, lead_id: str, event_type: str, recipient_email: Optional[str] = None,
                 custom_data: Optional[Dict[str, Any]] = None, best_effort: bool = False) -> DispatchResult:
        """
        Render and deliver one notification event.

        Args:
            lead_id: Stored lead id
            event_type: One of EventType
            recipient_email: Overrides the lead's own address for status updates
            custom_data: Extra context, e.g. {"days_since": 3} for reminders
            best_effort: Log and swallow every failure instead of raising

        Raises:
            LeadNotFound, InputError, DeliveryError, StoreError when best_effort is False
        """
        try:
            return self._dispatch(lead_id, event_type, recipient_email, custom_data or {})
        except Exception as e:
            if not best_effort:
                raise
            logger.error(f"Best-effort {event_type} notification for {lead_id} failed: {e}")
            return DispatchResult(lead_id=lead_id, event_type=str(event_type), success=False, error=str(e))

    def _dispatch(self, lead_id: str, event_type: str, recipient_email: Optional[str],
                  custom_data: Dict[str, Any]) -> DispatchResult:
        try:
            event = EventType(event_type)
        except ValueError:
            raise InputError(f"Unknown notification type: {event_type}") from None

        lead = self.leads.get(lead_id)
        if lead is None:
            raise LeadNotFound(lead_id)

        urgency = classify_urgency(lead)
        result = DispatchResult(lead_id=lead.id, event_type=event.value, urgency=urgency.value)
        logger.info(f"Dispatching {event.value} for lead {lead.id} (urgency {urgency.value})")

        handler = getattr(self, f"_on_{event.value}")
        handler(lead, urgency, result, recipient_email, custom_data)

        try:
            result.crm_record_id = self.crm.log_event(lead, event.value, urgency.value, custom_data or None)
        except Exception as e:
            logger.error(f"CRM audit of {event.value} for {lead.id} failed: {e}")

        result.reminders = reminder_schedule(lead.created_at, self.settings.follow_up_days)
        for day, when in zip(self.settings.follow_up_days, result.reminders):
            logger.info(f"Follow-up day {day} for {lead.id} due {when.isoformat()}")

        return result

    def _send(self, result: DispatchResult, to: str, email: templates.RenderedEmail) -> None:
        message_id = self.mailer.send_email(to, email.subject, email.html, email.tags)
        result.deliveries.append(Delivery("email", to, email.subject, message_id))

    def _add_to_group(self, result: DispatchResult, lead: Lead, group: str, urgency: Urgency) -> None:
        if self.mailer.add_to_group(lead.contact_email, group, subscriber_fields(lead, urgency.value)):
            result.list_groups.append(group)

    def _on_new_submission(self, lead, urgency, result, recipient_email, custom_data):
        email = templates.new_submission(lead, urgency.value, self.settings.site_url)
        self._send(result, self.settings.admin_email, email)

        if urgency is Urgency.HIGH and self.settings.urgent_email:
            urgent = templates.RenderedEmail(email.subject, email.html, ["urgent_notification", "high_priority"])
            self._send(result, self.settings.urgent_email, urgent)

        self._add_to_group(result, lead, NEW_LEADS_GROUP, urgency)

    def _on_status_update(self, lead, urgency, result, recipient_email, custom_data):
        to = recipient_email or lead.contact_email
        if not to:
            raise InputError(f"Lead {lead.id} has no contact email for a status update")
        self._send(result, to, templates.status_update(lead))

    def _on_urgent_case(self, lead, urgency, result, recipient_email, custom_data):
        email = templates.urgent_case(lead, self.settings.site_url)
        for to in self.settings.urgent_recipients:
            self._send(result, to, email)
        self._add_to_group(result, lead, URGENT_CASES_GROUP, urgency)

    def _on_follow_up_reminder(self, lead, urgency, result, recipient_email, custom_data):
        days_since = custom_data.get("days_since")
        if days_since is None:
            days_since = lead.days_since_created(self.clock())
        try:
            days_since = int(days_since)
        except (TypeError, ValueError):
            raise InputError("custom_data.days_since must be an integer") from None
        email = templates.follow_up_reminder(lead, days_since, urgency.value, self.settings.site_url)
        self._send(result, self.settings.admin_email, email)

    def _on_welcome_sequence(self, lead, urgency, result, recipient_email, custom_data):
        if not lead.contact_email:
            logger.info(f"Lead {lead.id} has no contact email, welcome sequence skipped")
            return
        result.automation_triggered = self.mailer.trigger_automation(lead.contact_email, WELCOME_AUTOMATION, {
            "name": lead.contact_name,
            "urgency_level": urgency.value,
            "submission_date": lead.created_at.isoformat(),
        })
