"""
Remote usage-limits document, fetched from Sanity's HTTP query API.

Configuration:
  SANITY_PROJECT_ID  — empty means "no remote doc", presets are used
  SANITY_DATASET     — defaults to production
  SANITY_API_TOKEN   — optional, for private datasets

Failure policy:
  • fetch_usage_limits_config() raises on network / HTTP / parse errors.
  • load_usage_limits_config() never raises: it logs a warning and falls
    back to DEFAULT_USAGE_LIMITS.
  • Only successful fetches are cached; the cache lives on the app
    context with an explicit TTL, not in a module global.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import httpx

from chat_usage.core.config import Settings
from chat_usage.services.usage_limits import (
    DEFAULT_USAGE_LIMITS,
    UsageLimitsConfig,
    normalize_usage_limits,
)

logger = logging.getLogger(__name__)

USAGE_LIMITS_DOCUMENT_ID = "singleton-chatUsageLimits"

USAGE_LIMITS_QUERY = """\
*[_type == "chatUsageLimits" && _id == $id][0]{
  freeSessionsPerDay,
  freeMessagesPerDay,
  authSessionsPerDay,
  authMessagesPerDay,
  sessionMinutes,
  cooldownHours
}"""


@dataclass
class UsageLimitsCache:
    """A single cached config value that expires after ttl_seconds."""

    ttl_seconds: float
    clock: Callable[[], float] = time.monotonic
    _value: UsageLimitsConfig | None = field(default=None, init=False, repr=False)
    _expires_at: float = field(default=0.0, init=False, repr=False)

    def get(self) -> UsageLimitsConfig | None:
        if self._value is None or self.clock() >= self._expires_at:
            return None
        return self._value

    def set(self, value: UsageLimitsConfig) -> None:
        self._value = value
        self._expires_at = self.clock() + self.ttl_seconds

    def clear(self) -> None:
        self._value = None
        self._expires_at = 0.0


def _query_url(app_settings: Settings) -> str:
    return (
        f"https://{app_settings.SANITY_PROJECT_ID}.api.sanity.io"
        f"/v{app_settings.SANITY_API_VERSION}"
        f"/data/query/{app_settings.SANITY_DATASET}"
    )


async def fetch_usage_limits_config(
    app_settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> UsageLimitsConfig:
    """
    Query the limits singleton and normalize it.

    Raises:
        httpx.HTTPError: network failure or non-2xx response.
        ValueError: the response body is not the expected JSON shape.
    """
    if not app_settings.SANITY_PROJECT_ID:
        return DEFAULT_USAGE_LIMITS

    params = {
        "query": USAGE_LIMITS_QUERY,
        # GROQ params are passed JSON-encoded as $name
        "$id": json.dumps(USAGE_LIMITS_DOCUMENT_ID),
    }
    headers = {}
    if app_settings.SANITY_API_TOKEN:
        headers["Authorization"] = f"Bearer {app_settings.SANITY_API_TOKEN}"

    async with httpx.AsyncClient(
        timeout=app_settings.HTTP_TIMEOUT_SECONDS,
        transport=transport,
    ) as client:
        response = await client.get(
            _query_url(app_settings),
            params=params,
            headers=headers,
        )
    response.raise_for_status()

    payload = response.json()
    if not isinstance(payload, dict):
        raise ValueError("Sanity response is not a JSON object")

    doc = payload.get("result")
    if doc is None:
        return DEFAULT_USAGE_LIMITS
    if not isinstance(doc, dict):
        raise ValueError("Sanity usage limits result is not an object")

    return normalize_usage_limits(doc)


async def load_usage_limits_config(
    app_settings: Settings,
    cache: UsageLimitsCache | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> UsageLimitsConfig:
    """Cached, failure-proof wrapper around fetch_usage_limits_config()."""
    if cache is not None:
        cached = cache.get()
        if cached is not None:
            return cached

    try:
        config = await fetch_usage_limits_config(app_settings, transport=transport)
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Failed to load chat usage limits config: %s", exc)
        return DEFAULT_USAGE_LIMITS

    if cache is not None:
        cache.set(config)
    return config
