"""Short sales-oriented summaries of visited LinkedIn profiles.

Best-effort: a missing API key or a failed call yields None and never fails
the visit step that triggered it.
"""

import json
import logging

import anthropic

from outreach_flow.config import settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You summarize LinkedIn profiles for a B2B sales team. "
    "Write 3-4 plain sentences: current role and company, career trajectory, "
    "and one concrete hook for outreach. No bullet points, no preamble."
)

# Only these fields are sent to the model
_PROFILE_FIELDS = (
    "first_name", "last_name", "headline", "summary", "location",
    "industry", "experience", "education", "skills",
)

_client: anthropic.Anthropic | None = None


def _get_client() -> anthropic.Anthropic:
    global _client
    if _client is None:
        _client = anthropic.Anthropic(
            api_key=settings.anthropic_api_key,
            timeout=settings.provider_timeout_seconds,
        )
    return _client


def summarize_profile(profile: dict, max_tokens: int = 512) -> str | None:
    if not settings.anthropic_api_key:
        logger.debug("ANTHROPIC_API_KEY not set, skipping profile summary")
        return None

    trimmed = {k: profile[k] for k in _PROFILE_FIELDS if profile.get(k)}
    if not trimmed:
        return None

    try:
        message = _get_client().messages.create(
            model=settings.anthropic_model,
            max_tokens=max_tokens,
            temperature=0.3,
            system=SYSTEM_PROMPT,
            messages=[{
                "role": "user",
                "content": "Profile:\n" + json.dumps(trimmed, default=str)[:6000],
            }],
        )
    except anthropic.APIError:
        logger.exception("Profile summary generation failed")
        return None

    text = "".join(block.text for block in message.content if getattr(block, "text", None))
    return text.strip() or None
