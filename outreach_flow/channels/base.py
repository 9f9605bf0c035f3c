"""Channel dispatcher contract and helpers shared by every channel."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from outreach_flow.models import CampaignLead


class RelationshipStatus(str, Enum):
    not_connected = "not_connected"
    pending_outgoing = "pending_outgoing"
    pending_incoming = "pending_incoming"
    connected = "connected"

    @classmethod
    def parse(cls, raw) -> "RelationshipStatus":
        """Map a provider's relationship value onto the enum.

        Anything unrecognised (including UNKNOWN) counts as not connected.
        """
        value = str(raw or "").strip().lower()
        try:
            return cls(value)
        except ValueError:
            return cls.not_connected


@dataclass
class DispatchResult:
    success: bool
    error: str | None = None
    data: dict = field(default_factory=dict)


@dataclass
class ProfileInfo:
    private_id: str
    relationship_status: RelationshipStatus
    raw: dict = field(default_factory=dict)


class ChannelDispatcher(Protocol):
    def execute(
        self,
        step_type: str,
        lead: CampaignLead,
        config: dict,
        account_id: str | None = None,
    ) -> DispatchResult: ...


_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def personalize(template: str | None, lead_data: dict) -> str:
    """Fill {{first_name}}-style placeholders from lead data.

    Unknown placeholders are left untouched; known ones with no value
    become empty strings.
    """
    if not template:
        return ""

    first = lead_data.get("first_name") or ""
    last = lead_data.get("last_name") or ""
    values = {
        "first_name": first,
        "last_name": last,
        "full_name": lead_data.get("name") or f"{first} {last}".strip(),
        "title": lead_data.get("title") or lead_data.get("headline") or "",
        "company": lead_data.get("organization") or lead_data.get("company") or "",
        "email": lead_data.get("email") or "",
        "phone": lead_data.get("phone") or lead_data.get("mobile_phone") or "",
        "industry": lead_data.get("industry") or "",
        "location": lead_data.get("city") or lead_data.get("state") or lead_data.get("country") or "",
    }

    def _sub(match):
        key = match.group(1)
        if key not in values:
            return match.group(0)
        return str(values[key])

    return _PLACEHOLDER.sub(_sub, template)


def linkedin_url_for(lead_data: dict) -> str:
    return lead_data.get("linkedin_url") or lead_data.get("linkedin_profile_url") or ""
