import json
import httpx
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from loguru import logger

from config import Settings
from domain.lead import Lead


class CRMSink(ABC):
    """Audit sink that records notification events against a CRM contact."""

    name = "crm"

    def __init__(self, timeout: float = 20.0, transport: Optional[httpx.BaseTransport] = None):
        self.timeout = timeout
        self.transport = transport

    def _client(self, **kwargs) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self.transport, **kwargs)

    @abstractmethod
    def log_event(self, lead: Lead, event_type: str, urgency: str,
                  custom_data: Optional[Dict[str, Any]] = None) -> Optional[str]:
        """
        Record an event for a lead.

        Returns:
            The CRM record id the event was attached to, or None when skipped

        Raises:
            httpx.HTTPError: the CRM call failed (callers treat this as best-effort)
        """

    def _event_body(self, lead: Lead, event_type: str, urgency: str,
                    custom_data: Optional[Dict[str, Any]]) -> str:
        lines = [
            f"Event: {event_type}",
            f"Submission ID: {lead.id}",
            f"Status: {lead.status}",
            f"Urgency: {urgency}",
        ]
        if custom_data:
            lines.append(f"Additional Data: {json.dumps(custom_data, default=str)}")
        return "\n".join(lines)


class NullCRMSink(CRMSink):
    name = "none"

    def log_event(self, lead, event_type, urgency, custom_data=None):
        logger.info(f"No CRM configured. Would log {event_type} for submission {lead.id}")
        return None


class HubSpotSink(CRMSink):
    """HubSpot CRM: upsert the contact, then attach a note for the event."""

    name = "hubspot"
    base_url = "https://api.hubapi.com"

    def __init__(self, api_key: Optional[str], owner_id: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.owner_id = owner_id

        if not self.api_key:
            logger.warning("No HubSpot API key provided, CRM audit disabled")

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

    def log_event(self, lead, event_type, urgency, custom_data=None):
        if not self.api_key:
            logger.info(f"HubSpot not configured, skipping {event_type} for {lead.id}")
            return None

        properties = {
            "email": lead.contact_email,
            "firstname": lead.first_name,
            "lastname": lead.last_name,
            "phone": lead.contact_phone,
            "foreclosure_status": lead.status,
            "home_value": lead.home_value,
            "mortgage_balance": lead.mortgage_balance,
            "missed_payments": str(lead.missed_payments),
            "lender": lead.lender,
            "submission_date": lead.created_at.isoformat(),
            "urgency_level": urgency,
            "lead_source": "Foreclosure Questionnaire",
            "property_type": lead.property_type,
            "nod_received": str(lead.nod_received).lower(),
            "last_event_type": event_type,
            "last_event_date": datetime.now(timezone.utc).isoformat(),
        }

        with self._client(base_url=self.base_url, headers=self._get_headers()) as client:
            contact_id = self._find_contact_by_email(client, lead.contact_email)
            if contact_id:
                client.patch(f"/crm/v3/objects/contacts/{contact_id}", json={"properties": properties}).raise_for_status()
                logger.info(f"Updated existing HubSpot contact {contact_id}")
            else:
                response = client.post("/crm/v3/objects/contacts", json={"properties": properties})
                response.raise_for_status()
                contact_id = str(response.json().get("id"))
                logger.info(f"Created HubSpot contact {contact_id}")

            note = {
                "properties": {
                    "hs_timestamp": datetime.now(timezone.utc).isoformat(),
                    "hs_note_body": self._event_body(lead, event_type, urgency, custom_data),
                },
                "associations": [{
                    "to": {"id": contact_id},
                    "types": [{"associationCategory": "HUBSPOT_DEFINED", "associationTypeId": 202}]
                }]
            }
            if self.owner_id:
                note["properties"]["hubspot_owner_id"] = self.owner_id
            client.post("/crm/v3/objects/notes", json=note).raise_for_status()

        return contact_id

    def _find_contact_by_email(self, client: httpx.Client, email: Optional[str]) -> Optional[str]:
        """Find contact id by email address."""
        if not email:
            return None
        response = client.post(
            "/crm/v3/objects/contacts/search",
            json={
                "filterGroups": [{
                    "filters": [{
                        "propertyName": "email",
                        "operator": "EQ",
                        "value": email
                    }]
                }]
            }
        )
        response.raise_for_status()
        results = response.json().get("results") or []
        return str(results[0]["id"]) if results else None


class SalesforceSink(CRMSink):
    """Salesforce REST API: create a Lead record and a completed Task for the event."""

    name = "salesforce"
    api_version = "v59.0"

    def __init__(self, instance_url: Optional[str], access_token: Optional[str], **kwargs):
        super().__init__(**kwargs)
        self.instance_url = (instance_url or "").rstrip("/")
        self.access_token = access_token

        if not (self.instance_url and self.access_token):
            logger.warning("Salesforce instance URL or token missing, CRM audit disabled")

    def log_event(self, lead, event_type, urgency, custom_data=None):
        if not (self.instance_url and self.access_token):
            logger.info(f"Salesforce not configured, skipping {event_type} for {lead.id}")
            return None

        base = f"{self.instance_url}/services/data/{self.api_version}/sobjects"
        headers = {"Authorization": f"Bearer {self.access_token}", "Content-Type": "application/json"}

        with self._client(headers=headers) as client:
            response = client.post(f"{base}/Lead/", json={
                "FirstName": lead.first_name,
                "LastName": lead.last_name or lead.first_name or "Unknown",
                "Email": lead.contact_email,
                "Phone": lead.contact_phone,
                "Company": "Foreclosure Questionnaire",
                "LeadSource": "Foreclosure Questionnaire",
                "Description": f"Urgency: {urgency}; lender: {lead.lender or 'n/a'}",
            })
            response.raise_for_status()
            record_id = str(response.json().get("id"))

            client.post(f"{base}/Task/", json={
                "WhoId": record_id,
                "Subject": f"Foreclosure pipeline: {event_type}",
                "Description": self._event_body(lead, event_type, urgency, custom_data),
                "Status": "Completed",
            }).raise_for_status()

        logger.info(f"Logged {event_type} to Salesforce lead {record_id}")
        return record_id


class PipedriveSink(CRMSink):
    """Pipedrive: create a person and attach a note for the event."""

    name = "pipedrive"
    base_url = "https://api.pipedrive.com/v1"

    def __init__(self, api_token: Optional[str], **kwargs):
        super().__init__(**kwargs)
        self.api_token = api_token

        if not self.api_token:
            logger.warning("No Pipedrive API token provided, CRM audit disabled")

    def log_event(self, lead, event_type, urgency, custom_data=None):
        if not self.api_token:
            logger.info(f"Pipedrive not configured, skipping {event_type} for {lead.id}")
            return None

        params = {"api_token": self.api_token}
        person = {"name": lead.contact_name or lead.contact_email or f"Submission {lead.id}"}
        if lead.contact_email:
            person["email"] = [{"value": lead.contact_email, "primary": True}]
        if lead.contact_phone:
            person["phone"] = [{"value": lead.contact_phone, "primary": True}]

        with self._client(base_url=self.base_url, params=params) as client:
            response = client.post("/persons", json=person)
            response.raise_for_status()
            person_id = response.json()["data"]["id"]

            client.post("/notes", json={
                "person_id": person_id,
                "content": self._event_body(lead, event_type, urgency, custom_data),
            }).raise_for_status()

        logger.info(f"Logged {event_type} to Pipedrive person {person_id}")
        return str(person_id)


class CustomCRMSink(CRMSink):
    """POSTs the raw event to a user-provided webhook."""

    name = "custom"

    def __init__(self, url: Optional[str], api_key: Optional[str], **kwargs):
        super().__init__(**kwargs)
        self.url = url
        self.api_key = api_key

    def log_event(self, lead, event_type, urgency, custom_data=None):
        if not (self.url and self.api_key):
            logger.info(f"Custom CRM not configured, skipping {event_type} for {lead.id}")
            return None

        payload = {
            "submission": {"id": lead.id, "status": lead.status, **lead.answers()},
            "eventType": event_type,
            "urgency": urgency,
            "customData": custom_data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        with self._client(headers={"Authorization": f"Bearer {self.api_key}"}) as client:
            client.post(self.url, content=json.dumps(payload, default=str),
                        headers={"Content-Type": "application/json"}).raise_for_status()

        logger.info(f"Logged {event_type} to custom CRM for {lead.id}")
        return lead.id


def build_crm_sink(settings: Settings, transport: Optional[httpx.BaseTransport] = None) -> CRMSink:
    """Pick the CRM backend named by CRM_TYPE."""
    common = {"timeout": settings.http_timeout, "transport": transport}
    crm_type = (settings.crm_type or "").lower()

    if crm_type == "hubspot":
        return HubSpotSink(settings.hubspot_api_key, settings.hubspot_owner_id, **common)
    if crm_type == "salesforce":
        return SalesforceSink(settings.salesforce_instance_url, settings.salesforce_access_token, **common)
    if crm_type == "pipedrive":
        return PipedriveSink(settings.pipedrive_api_token, **common)
    if crm_type == "custom":
        return CustomCRMSink(settings.custom_crm_url, settings.custom_crm_api_key, **common)
    if crm_type not in ("", "none"):
        logger.warning(f"Unknown CRM_TYPE {settings.crm_type!r}, CRM audit disabled")
    return NullCRMSink(**common)
