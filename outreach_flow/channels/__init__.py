"""Channel dispatchers: LinkedIn (Unipile), email and voice."""

from outreach_flow.channels.base import (
    ChannelDispatcher,
    DispatchResult,
    ProfileInfo,
    RelationshipStatus,
    personalize,
)
from outreach_flow.channels.email import EmailDispatcher
from outreach_flow.channels.linkedin import LinkedInDispatcher
from outreach_flow.channels.unipile import UnipileClient
from outreach_flow.channels.voice import VoiceDispatcher


def build_dispatchers(
    linkedin: ChannelDispatcher | None = None,
    email: ChannelDispatcher | None = None,
    voice: ChannelDispatcher | None = None,
) -> dict[str, ChannelDispatcher]:
    """Step type -> dispatcher table used by the step executor."""
    linkedin = linkedin or LinkedInDispatcher()
    email = email or EmailDispatcher()
    voice = voice or VoiceDispatcher()
    return {
        "linkedin_connect": linkedin,
        "linkedin_message": linkedin,
        "linkedin_visit": linkedin,
        "linkedin_follow": linkedin,
        "voice_agent_call": voice,
        "email_send": email,
        "email_followup": email,
    }


__all__ = [
    "ChannelDispatcher",
    "DispatchResult",
    "ProfileInfo",
    "RelationshipStatus",
    "UnipileClient",
    "LinkedInDispatcher",
    "EmailDispatcher",
    "VoiceDispatcher",
    "build_dispatchers",
    "personalize",
]
