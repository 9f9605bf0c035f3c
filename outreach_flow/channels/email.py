"""Email channel dispatcher, backed by the internal email service."""

import logging

from outreach_flow.channels.base import DispatchResult, personalize
from outreach_flow.channels.http import request_json
from outreach_flow.config import settings
from outreach_flow.errors import ProviderError
from outreach_flow.models import CampaignLead

logger = logging.getLogger(__name__)


class EmailDispatcher:
    step_types = ("email_send", "email_followup")

    def __init__(self, service_url: str | None = None):
        self.service_url = service_url if service_url is not None else settings.email_service_url

    def execute(
        self,
        step_type: str,
        lead: CampaignLead,
        config: dict,
        account_id: str | None = None,
    ) -> DispatchResult:
        if step_type not in self.step_types:
            return DispatchResult(success=False, error=f"Unsupported email action: {step_type}")
        if not self.service_url:
            raise ProviderError("EMAIL_SERVICE_URL not configured")

        lead_data = lead.data
        email = lead_data.get("email") or lead_data.get("email_address")
        if not email:
            raise ProviderError("No email address found for lead")

        payload = {
            "to": email,
            "subject": personalize(config.get("subject"), lead_data),
            "body": personalize(config.get("body"), lead_data),
            "lead_id": lead.id,
            "campaign_id": lead.campaign_id,
            "tenant_id": lead.tenant_id,
        }
        if step_type == "email_followup":
            payload["is_followup"] = True

        data = request_json("POST", f"{self.service_url.rstrip('/')}/api/email/send", json=payload)
        if not data.get("success"):
            raise ProviderError(data.get("message") or "Email send failed")

        logger.info("Sent %s to lead %d", step_type, lead.id)
        return DispatchResult(success=True, data={
            "email_id": data.get("email_id"),
            "status": data.get("status"),
        })
