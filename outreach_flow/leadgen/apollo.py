"""Apollo people search as the campaign lead-generation provider.

Filters use the campaign builder's shape: ``roles``, ``industries``,
``location`` (string or list) and optional ``seniorities``. Results are
normalized to the lead-data keys conditions and templates read.
"""

import logging
from dataclasses import dataclass, field
from typing import Protocol

from outreach_flow.channels.http import request_json
from outreach_flow.config import settings
from outreach_flow.errors import ProviderError

logger = logging.getLogger(__name__)

_MAX_PER_PAGE = 100


@dataclass
class LeadSearchResult:
    leads: list[dict] = field(default_factory=list)
    count: int = 0


class LeadProvider(Protocol):
    def search(self, filters: dict, limit: int = 25) -> LeadSearchResult: ...


class ApolloLeadProvider:
    def __init__(self, api_key: str | None = None, base_url: str | None = None):
        self.api_key = api_key if api_key is not None else settings.apollo_api_key
        self.base_url = (base_url or settings.apollo_base_url).rstrip("/")

    def search(self, filters: dict, limit: int = 25) -> LeadSearchResult:
        if not self.api_key:
            raise ProviderError("APOLLO_API_KEY not set")

        payload = build_search_payload(filters, limit)
        data = request_json(
            "POST",
            f"{self.base_url}/mixed_people/search",
            json=payload,
            headers={"X-Api-Key": self.api_key, "Content-Type": "application/json"},
        )

        people = data.get("people") or []
        leads = [normalize_person(p) for p in people[:limit]]
        logger.info("Apollo search returned %d leads (filters=%s)", len(leads), filters)
        return LeadSearchResult(leads=leads, count=len(leads))


def build_search_payload(filters: dict, limit: int) -> dict:
    payload = {"page": 1, "per_page": min(max(limit, 1), _MAX_PER_PAGE)}

    roles = [r.strip() for r in filters.get("roles") or [] if isinstance(r, str) and r.strip()]
    if roles:
        payload["person_titles"] = roles

    industries = [i.strip() for i in filters.get("industries") or [] if isinstance(i, str) and len(i.strip()) >= 2]
    if industries:
        payload["q_organization_keyword_tags"] = industries

    location = filters.get("location")
    if isinstance(location, str) and location.strip():
        payload["person_locations"] = [location.strip()]
    elif isinstance(location, list):
        locations = [loc.strip() for loc in location if isinstance(loc, str) and loc.strip()]
        if locations:
            payload["person_locations"] = locations

    seniorities = filters.get("seniorities") or []
    if seniorities:
        payload["person_seniorities"] = list(seniorities)

    return payload


def normalize_person(person: dict) -> dict:
    org = person.get("organization") or {}
    return {
        "apollo_id": person.get("id"),
        "first_name": person.get("first_name") or "",
        "last_name": person.get("last_name") or "",
        "name": person.get("name") or "",
        "title": person.get("title") or "",
        "headline": person.get("headline") or "",
        "seniority_level": person.get("seniority") or "",
        "email": person.get("email") or None,
        "linkedin_url": person.get("linkedin_url") or "",
        "organization": org.get("name") or "",
        "industry": org.get("industry") or "",
        "city": person.get("city") or "",
        "country": person.get("country") or "",
    }
