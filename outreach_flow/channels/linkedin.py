"""LinkedIn channel dispatcher: connect, message, visit and follow steps."""

import logging

from outreach_flow.ai.profile_summary import summarize_profile
from outreach_flow.channels.base import DispatchResult, RelationshipStatus, linkedin_url_for, personalize
from outreach_flow.channels.unipile import UnipileClient
from outreach_flow.errors import ProviderError
from outreach_flow.models import CampaignLead

logger = logging.getLogger(__name__)


class LinkedInDispatcher:
    step_types = ("linkedin_connect", "linkedin_message", "linkedin_visit", "linkedin_follow")

    def __init__(self, client: UnipileClient | None = None):
        self.client = client or UnipileClient()

    def execute(
        self,
        step_type: str,
        lead: CampaignLead,
        config: dict,
        account_id: str | None = None,
    ) -> DispatchResult:
        if step_type not in self.step_types:
            return DispatchResult(success=False, error=f"Unsupported LinkedIn action: {step_type}")
        if not account_id:
            raise ProviderError("Campaign has no LinkedIn account configured")

        lead_data = lead.data
        profile_url = linkedin_url_for(lead_data)
        if not profile_url:
            raise ProviderError("No LinkedIn URL found for lead")

        logger.info("Executing %s for lead %d", step_type, lead.id)

        if step_type == "linkedin_visit":
            return self._visit(account_id, profile_url)

        profile = self.client.lookup_profile(profile_url, account_id)

        if step_type == "linkedin_connect":
            if profile.relationship_status in (RelationshipStatus.connected, RelationshipStatus.pending_outgoing):
                logger.info("Lead %d already %s, skipping invite", lead.id, profile.relationship_status.value)
                return DispatchResult(success=True, data={
                    "action_taken": "skipped",
                    "relationship_status": profile.relationship_status.value,
                })
            message = personalize(config.get("message"), lead_data)
            data = self.client.send_invite(account_id, profile.private_id, message)
        elif step_type == "linkedin_message":
            message = personalize(config.get("message"), lead_data)
            data = self.client.send_message(account_id, profile.private_id, message)
        else:
            data = self.client.follow_profile(account_id, profile.private_id)

        data["relationship_status"] = profile.relationship_status.value
        return DispatchResult(success=True, data=data)

    def _visit(self, account_id: str, profile_url: str) -> DispatchResult:
        profile = self.client.visit_profile(account_id, profile_url)
        data = {"action_taken": "profile_visited"}

        summary = summarize_profile(profile)
        if summary:
            data["lead_data"] = {"profile_summary": summary}
        return DispatchResult(success=True, data=data)
