import os
from dataclasses import dataclass, field
from typing import Optional, Tuple
from dotenv import load_dotenv
from loguru import logger

DEFAULT_ADMIN_EMAIL = "admin@repmotivatedseller.org"
DEFAULT_URGENT_EMAIL = "urgent@repmotivatedseller.org"
DEFAULT_MANAGER_EMAIL = "manager@repmotivatedseller.org"
DEFAULT_FROM_EMAIL = "noreply@repmotivatedseller.org"
DEFAULT_AGENT_PHONE = "+15551234567"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value or default


@dataclass(frozen=True)
class Settings:
    """Process configuration, read once from the environment at startup."""

    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    redis_url: Optional[str] = "redis://localhost:6379"

    admin_email: str = DEFAULT_ADMIN_EMAIL
    urgent_email: str = DEFAULT_URGENT_EMAIL
    manager_email: str = DEFAULT_MANAGER_EMAIL
    from_email: str = DEFAULT_FROM_EMAIL
    from_name: str = "RepMotivatedSeller"
    mailerlite_api_key: Optional[str] = None

    crm_type: str = "hubspot"
    hubspot_api_key: Optional[str] = None
    hubspot_owner_id: Optional[str] = None
    salesforce_instance_url: Optional[str] = None
    salesforce_access_token: Optional[str] = None
    pipedrive_api_token: Optional[str] = None
    custom_crm_url: Optional[str] = None
    custom_crm_api_key: Optional[str] = None

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4-turbo-preview"

    agent_phone_number: str = DEFAULT_AGENT_PHONE
    scheduling_phone_number: str = DEFAULT_AGENT_PHONE
    site_url: str = ""

    log_level: str = "INFO"
    log_file: Optional[str] = "logs/app.log"
    http_timeout: float = 20.0

    follow_up_days: Tuple[int, ...] = field(default=(1, 3, 7, 14))

    @property
    def urgent_recipients(self) -> Tuple[str, ...]:
        return tuple(r for r in (self.admin_email, self.urgent_email, self.manager_email) if r)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """Build settings from environment variables (and a .env file if present)."""
        if dotenv:
            load_dotenv()

        timeout = _env("HTTP_TIMEOUT", "20")
        try:
            http_timeout = float(timeout)
        except ValueError:
            logger.warning(f"Invalid HTTP_TIMEOUT {timeout!r}, using 20 seconds")
            http_timeout = 20.0

        return cls(
            supabase_url=_env("SUPABASE_URL"),
            supabase_service_key=_env("SUPABASE_SERVICE_ROLE_KEY"),
            supabase_anon_key=_env("SUPABASE_ANON_KEY"),
            redis_url=_env("REDIS_URL", "redis://localhost:6379"),
            admin_email=_env("ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL),
            urgent_email=_env("URGENT_EMAIL", DEFAULT_URGENT_EMAIL),
            manager_email=_env("MANAGER_EMAIL", DEFAULT_MANAGER_EMAIL),
            from_email=_env("FROM_EMAIL", DEFAULT_FROM_EMAIL),
            from_name=_env("FROM_NAME", "RepMotivatedSeller"),
            mailerlite_api_key=_env("MAILERLITE_API_KEY"),
            crm_type=(_env("CRM_TYPE", "hubspot") or "hubspot").lower(),
            hubspot_api_key=_env("HUBSPOT_API_KEY"),
            hubspot_owner_id=_env("HUBSPOT_OWNER_ID"),
            salesforce_instance_url=_env("SALESFORCE_INSTANCE_URL"),
            salesforce_access_token=_env("SALESFORCE_ACCESS_TOKEN"),
            pipedrive_api_token=_env("PIPEDRIVE_API_TOKEN"),
            custom_crm_url=_env("CUSTOM_CRM_URL"),
            custom_crm_api_key=_env("CUSTOM_CRM_API_KEY"),
            openai_api_key=_env("OPENAI_API_KEY"),
            openai_model=_env("OPENAI_MODEL", "gpt-4-turbo-preview"),
            agent_phone_number=_env("AGENT_PHONE_NUMBER", DEFAULT_AGENT_PHONE),
            scheduling_phone_number=_env("SCHEDULING_PHONE_NUMBER", DEFAULT_AGENT_PHONE),
            site_url=(_env("SITE_URL", "") or "").rstrip("/"),
            log_level=(_env("LOG_LEVEL", "INFO") or "INFO").upper(),
            log_file=_env("LOG_FILE", "logs/app.log"),
            http_timeout=http_timeout,
        )


def configure_logging(settings: Settings) -> None:
    """Add the rotating file sink used by the service."""
    if not settings.log_file:
        return
    log_dir = os.path.dirname(settings.log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    logger.add(settings.log_file, rotation="1 day", retention="7 days", level=settings.log_level)
