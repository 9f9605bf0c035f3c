"""Voice channel dispatcher: places a call through the voice agent service."""

import logging

from outreach_flow.channels.base import DispatchResult, personalize
from outreach_flow.channels.http import request_json
from outreach_flow.config import settings
from outreach_flow.errors import ProviderError
from outreach_flow.models import CampaignLead

logger = logging.getLogger(__name__)


class VoiceDispatcher:
    step_types = ("voice_agent_call",)

    def __init__(self, service_url: str | None = None):
        self.service_url = service_url if service_url is not None else settings.voice_service_url

    def execute(
        self,
        step_type: str,
        lead: CampaignLead,
        config: dict,
        account_id: str | None = None,
    ) -> DispatchResult:
        if step_type not in self.step_types:
            return DispatchResult(success=False, error=f"Unsupported voice action: {step_type}")
        if not self.service_url:
            raise ProviderError("VOICE_SERVICE_URL not configured")

        lead_data = lead.data
        phone = lead_data.get("phone") or lead_data.get("mobile_phone") or lead_data.get("phone_number")
        if not phone:
            raise ProviderError("No phone number found for lead")

        context = config.get("voiceContext") or config.get("added_context") or config.get("voice_context") or ""
        data = request_json(
            "POST",
            f"{self.service_url.rstrip('/')}/api/voice-agent/make-call",
            json={
                "phone_number": phone,
                "voice_agent_id": config.get("voiceAgentId") or config.get("voice_agent_id"),
                "added_context": personalize(context, lead_data),
                "lead_id": lead.id,
                "campaign_id": lead.campaign_id,
                "tenant_id": lead.tenant_id,
            },
        )
        if not data.get("success"):
            raise ProviderError(data.get("message") or "Voice call failed")

        logger.info("Voice call %s started for lead %d", data.get("call_id"), lead.id)
        return DispatchResult(success=True, data={"call_id": data.get("call_id"), "status": data.get("status")})
