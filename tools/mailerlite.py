import httpx
from typing import Dict, Any, List, Optional
from loguru import logger

from domain.errors import ChannelRejected, ChannelUnavailable

CHANNEL = "mailerlite"


class MailerLiteClient:
    """MailerLite integration: transactional email, list groups and automation triggers."""

    base_url = "https://connect.mailerlite.com/api"

    def __init__(self, api_key: Optional[str], from_email: str, from_name: str,
                 timeout: float = 20.0, transport: Optional[httpx.BaseTransport] = None):
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name
        self.timeout = timeout
        self.transport = transport

        if not self.api_key:
            logger.warning("No MailerLite API key provided, email delivery is unavailable")

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            headers=self._get_headers(),
            timeout=self.timeout,
            transport=self.transport,
        )

    def send_email(self, to: str, subject: str, html: str, tags: Optional[List[str]] = None) -> Optional[str]:
        """
        Send one transactional email.

        Args:
            to: Recipient address
            subject: Subject line
            html: HTML body
            tags: MailerLite tags for reporting

        Returns:
            Provider message id, if the provider returned one

        Raises:
            ChannelUnavailable: no API key, or the provider could not be reached
            ChannelRejected: the provider answered with a non-success status
        """
        if not self.api_key:
            raise ChannelUnavailable(CHANNEL, f"MAILERLITE_API_KEY not configured, cannot email {to}")

        payload = {
            "to": [{"email": to}],
            "from": {"email": self.from_email, "name": self.from_name},
            "subject": subject,
            "html": html,
            "tags": tags or [],
            "track_opens": True,
            "track_clicks": True,
        }

        try:
            with self._client() as client:
                response = client.post("/emails", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"MailerLite unreachable while emailing {to}: {e}")
            raise ChannelUnavailable(CHANNEL, str(e)) from e

        if response.status_code >= 300:
            logger.error(f"MailerLite rejected email to {to}: {response.status_code} {response.text}")
            raise ChannelRejected(CHANNEL, f"{response.status_code} - {response.text}", response.status_code)

        message_id = _data_field(response, "id")
        logger.info(f"Email sent via MailerLite to {to}: {message_id}")
        return message_id

    def get_or_create_group(self, name: str) -> str:
        """Return the id of the group called `name`, creating it when missing."""
        if not self.api_key:
            raise ChannelUnavailable(CHANNEL, "MAILERLITE_API_KEY not configured")

        with self._client() as client:
            response = client.get("/groups", params={"filter[name]": name})
            if response.status_code < 300:
                for group in response.json().get("data") or []:
                    if group.get("name") == name:
                        return str(group["id"])

            created = client.post("/groups", json={"name": name})
            if created.status_code >= 300:
                raise ChannelRejected(CHANNEL, f"Failed to create group {name}: {created.text}", created.status_code)
            return str(created.json()["data"]["id"])

    def add_to_group(self, email: Optional[str], group_name: str, fields: Dict[str, Any]) -> bool:
        """
        Subscribe `email` to a segmented list group.

        Returns:
            True when the subscriber was added; False when skipped or failed
        """
        if not self.api_key or not email:
            logger.info(f"Skipping list group {group_name}: no API key or no contact email")
            return False

        try:
            group_id = self.get_or_create_group(group_name)
            with self._client() as client:
                response = client.post("/subscribers", json={
                    "email": email,
                    "fields": fields,
                    "groups": [group_id],
                    "status": "active",
                })
        except Exception as e:
            logger.error(f"MailerLite list addition error: {e}")
            return False

        if response.status_code >= 300:
            logger.error(f"Failed to add {email} to list {group_name}: {response.text}")
            return False

        logger.info(f"Added {email} to MailerLite list: {group_name}")
        return True

    def trigger_automation(self, email: str, automation: str, fields: Dict[str, Any]) -> bool:
        """Register `email` with an automation trigger; no email is sent directly."""
        if not self.api_key:
            logger.info(f"No MailerLite API key, automation {automation} not triggered for {email}")
            return False

        try:
            with self._client() as client:
                response = client.post("/subscribers", json={
                    "email": email,
                    "fields": fields,
                    "automation_triggers": [automation],
                })
        except httpx.HTTPError as e:
            logger.error(f"Failed to trigger MailerLite automation: {e}")
            return False

        if response.status_code >= 300:
            logger.error(f"MailerLite automation {automation} rejected for {email}: {response.text}")
            return False

        logger.info(f"Triggered automation {automation} for {email}")
        return True


def _data_field(response: httpx.Response, key: str) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    data = body.get("data") if isinstance(body, dict) else None
    value = data.get(key) if isinstance(data, dict) else None
    return str(value) if value is not None else None
