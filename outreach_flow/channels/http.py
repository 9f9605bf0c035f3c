"""Shared JSON request helper for provider adapters.

Transport failures, timeouts, 429 and 5xx responses are retried once; if the
retry also fails the call raises TransientProviderError. Other error statuses
raise ProviderError straight away.
"""

import logging
import time

import httpx

from outreach_flow.config import settings
from outreach_flow.errors import ProviderError, TransientProviderError

logger = logging.getLogger(__name__)

_MAX_ATTEMPTS = 2
_RETRY_DELAY = 1.0


def request_json(method: str, url: str, **kwargs) -> dict:
    timeout = kwargs.pop("timeout", settings.provider_timeout_seconds)

    last_error = ""
    for attempt in range(_MAX_ATTEMPTS):
        if attempt:
            time.sleep(_RETRY_DELAY)
        try:
            resp = httpx.request(method, url, timeout=timeout, **kwargs)
        except (httpx.TimeoutException, httpx.TransportError) as e:
            last_error = f"{type(e).__name__}: {e}"
            logger.warning("%s %s failed (attempt %d): %s", method, url, attempt + 1, last_error)
            continue

        if resp.status_code == 429 or resp.status_code >= 500:
            last_error = f"HTTP {resp.status_code}"
            logger.warning("%s %s returned %d (attempt %d)", method, url, resp.status_code, attempt + 1)
            continue

        if resp.status_code >= 400:
            raise ProviderError(f"{method} {url} returned {resp.status_code}: {resp.text[:200]}")

        if not resp.content:
            return {}
        try:
            data = resp.json()
        except (ValueError, httpx.DecodingError) as e:
            raise ProviderError(f"{method} {url} returned a non-JSON body: {resp.text[:200]}") from e
        return data if isinstance(data, dict) else {"items": data}

    raise TransientProviderError(f"{method} {url} failed after {_MAX_ATTEMPTS} attempts: {last_error}")
