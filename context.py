"""
Process-wide wiring.

`build_context` constructs every client exactly once at startup; handlers
receive the resulting PipelineContext instead of reaching for globals.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from loguru import logger

from config import Settings
from domain.lead import utc_now
from repositories.call_repository import CallRepository
from repositories.client import SupabaseAuthenticator, create_supabase_client
from repositories.lead_repository import LeadRepository
from repositories.voice_usage_repository import VoiceUsageRepository
from services.call_analytics import CallAnalytics
from services.dispatcher import NotificationDispatcher
from services.follow_up import FollowUpScheduler
from services.leads import IntakeService, LeadAdmin
from services.voice import VoiceCallHandler
from services.voice_usage import VoiceUsageService
from graph.workflows import build_call_turn_workflow, build_intake_workflow
from tools.crm import CRMSink, build_crm_sink
from tools.idempotency import Idem
from tools.llm import LLMClient
from tools.mailerlite import MailerLiteClient


@dataclass
class PipelineContext:
    settings: Settings
    leads: Any
    calls: Any
    voice_usage_repository: Any
    authenticator: Any
    mailer: Any
    crm: CRMSink
    llm: Any
    idem: Idem
    clock: Callable[[], datetime] = utc_now

    def __post_init__(self):
        self.dispatcher = NotificationDispatcher(self.leads, self.mailer, self.crm, self.settings, self.clock)
        self.intake = IntakeService(
            self.authenticator,
            build_intake_workflow(self.leads, self.dispatcher),
            self.idem,
        )
        self.lead_admin = LeadAdmin(self.leads, self.dispatcher, self.clock)
        self.follow_ups = FollowUpScheduler(self.leads, self.dispatcher, self.settings.follow_up_days, self.clock)
        self.voice = VoiceCallHandler(
            self.calls,
            build_call_turn_workflow(
                self.llm,
                self.calls,
                self.settings.agent_phone_number,
                self.settings.scheduling_phone_number,
            ),
            self.settings.agent_phone_number,
        )
        self.voice_usage = VoiceUsageService(self.voice_usage_repository, self.clock)
        self.analytics = CallAnalytics(self.calls, self.clock)


def build_context(settings: Settings) -> PipelineContext:
    """Create the store, channel and model clients from settings."""
    client = create_supabase_client(settings)
    ctx = PipelineContext(
        settings=settings,
        leads=LeadRepository(client),
        calls=CallRepository(client),
        voice_usage_repository=VoiceUsageRepository(client),
        authenticator=SupabaseAuthenticator(client),
        mailer=MailerLiteClient(
            settings.mailerlite_api_key,
            settings.from_email,
            settings.from_name,
            timeout=settings.http_timeout,
        ),
        crm=build_crm_sink(settings),
        llm=LLMClient(settings.openai_api_key, settings.openai_model, timeout=settings.http_timeout),
        idem=Idem(settings.redis_url),
    )
    logger.info(f"Pipeline context ready (CRM: {ctx.crm.name})")
    return ctx
