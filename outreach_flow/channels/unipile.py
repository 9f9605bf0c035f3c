"""Unipile client for LinkedIn actions.

Base URL is derived from the configured DSN (``api8.unipile.com:13811`` style)
as ``https://<dsn>/api/v1``; requests authenticate with the X-API-KEY header.
"""

import logging

from outreach_flow.channels.base import ProfileInfo, RelationshipStatus
from outreach_flow.channels.http import request_json
from outreach_flow.config import settings
from outreach_flow.errors import ProviderError

logger = logging.getLogger(__name__)


class UnipileClient:
    def __init__(self, dsn: str | None = None, token: str | None = None):
        self.dsn = dsn if dsn is not None else settings.unipile_dsn
        self.token = token if token is not None else settings.unipile_token

    @property
    def base_url(self) -> str:
        dsn = (self.dsn or "").strip()
        if not dsn:
            raise ProviderError("UNIPILE_DSN not configured")
        if not dsn.startswith(("http://", "https://")):
            dsn = f"https://{dsn}"
        dsn = dsn.rstrip("/")
        if "/api/v1" not in dsn:
            dsn = f"{dsn}/api/v1"
        return dsn

    def _headers(self) -> dict:
        if not self.token:
            raise ProviderError("UNIPILE_TOKEN not configured")
        return {"X-API-KEY": self.token, "Content-Type": "application/json"}

    def _request(self, method: str, path: str, **kwargs) -> dict:
        return request_json(method, f"{self.base_url}{path}", headers=self._headers(), **kwargs)

    def lookup_profile(self, profile_id: str, account_id: str) -> ProfileInfo:
        """Resolve a public profile id/URL to its private id and relationship."""
        data = self._request(
            "GET",
            "/linkedin/profile",
            params={"account_id": account_id, "profile_url": profile_id},
        )
        profile = data.get("data") or data
        private_id = profile.get("id") or profile.get("private_id")
        if not private_id:
            raise ProviderError(f"Profile not found: {profile_id}")

        status = RelationshipStatus.parse(profile.get("relationship"))
        logger.debug("Profile %s -> %s (%s)", profile_id, private_id, status.value)
        return ProfileInfo(private_id=str(private_id), relationship_status=status, raw=profile)

    def send_invite(self, account_id: str, private_id: str, message: str = "") -> dict:
        payload = {"account_id": account_id, "profile_id": private_id}
        if message:
            payload["message"] = message
        response = self._request("POST", "/linkedin/invite", json=payload)
        logger.info("Invitation sent to %s from account %s", private_id, account_id)
        return {"action_taken": "invitation_sent", "response": response}

    def send_message(self, account_id: str, private_id: str, message: str) -> dict:
        response = self._request(
            "POST",
            "/linkedin/message",
            json={"account_id": account_id, "conversation_id": private_id, "content": message},
        )
        logger.info("Message sent to %s from account %s", private_id, account_id)
        return {"action_taken": "message_sent", "response": response}

    def accept_invite(self, account_id: str, private_id: str) -> dict:
        response = self._request(
            "POST",
            "/linkedin/accept-invitation",
            json={"account_id": account_id, "profile_id": private_id},
        )
        logger.info("Accepted invitation from %s on account %s", private_id, account_id)
        return {"action_taken": "invitation_accepted", "response": response}

    def visit_profile(self, account_id: str, profile_url: str) -> dict:
        data = self._request(
            "GET",
            "/linkedin/profile",
            params={"account_id": account_id, "profile_url": profile_url, "notify": "true"},
        )
        return data.get("data") or data

    def follow_profile(self, account_id: str, private_id: str) -> dict:
        response = self._request(
            "POST",
            "/linkedin/follow",
            json={"account_id": account_id, "profile_id": private_id},
        )
        return {"action_taken": "followed", "response": response}
