"""
Caller-side helpers for the usage status endpoint.

fetch_usage_status() is the polling client: it never raises. Failures
and cancellations come back as None and the caller keeps its last
known state. A cancellation observed after the response arrived also
yields None, so a late response can never overwrite newer state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Literal

import httpx
from pydantic import ValidationError

from chat_usage.schemas.usage import UsageStatusResponse
from chat_usage.services.session_gate import USAGE_LIMIT_CODE, UsageLimitError

logger = logging.getLogger(__name__)


def _is_cancelled(cancelled: asyncio.Event | None) -> bool:
    return cancelled is not None and cancelled.is_set()


async def fetch_usage_status(
    client: httpx.AsyncClient,
    url: str,
    *,
    cancelled: asyncio.Event | None = None,
) -> UsageStatusResponse | None:
    """Poll the usage endpoint. Returns None on any failure or cancellation."""
    if _is_cancelled(cancelled):
        return None

    try:
        response = await client.get(url)
    except httpx.HTTPError as exc:
        logger.debug("Failed to fetch usage status: %s", exc)
        return None

    if not response.is_success:
        logger.debug(
            "Failed to fetch usage status: %d %s",
            response.status_code,
            response.reason_phrase,
        )
        return None

    try:
        payload = UsageStatusResponse.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
        logger.debug("Failed to parse usage status response: %s", exc)
        return None

    if _is_cancelled(cancelled):
        return None
    return payload


def is_usage_limit_error(value: Any) -> bool:
    """True for UsageLimitError instances and for serialized 429 bodies."""
    if isinstance(value, UsageLimitError):
        return True
    if isinstance(value, dict):
        return value.get("code") == USAGE_LIMIT_CODE or value.get("name") == "UsageLimitError"
    return getattr(value, "code", None) == USAGE_LIMIT_CODE


@dataclass(frozen=True, slots=True)
class UsageBannerState:
    tone: Literal["limit", "info"]
    message: str
    show_cta: bool


def build_usage_banner_state(
    *,
    usage: UsageStatusResponse | None,
    limit_reached: bool,
) -> UsageBannerState | None:
    """Banner text for the chat panel; None when there is nothing to say."""
    show_cta = limit_reached or bool(usage and usage.is_limited)

    if limit_reached:
        return UsageBannerState(
            tone="limit",
            message="Daily limit reached. Sign in to continue.",
            show_cta=show_cta,
        )

    if usage is None:
        return None

    if usage.is_limited:
        return UsageBannerState(
            tone="limit",
            message="Usage limit reached for today.",
            show_cta=show_cta,
        )

    return UsageBannerState(
        tone="info",
        message=f"Messages left today: {usage.messages_remaining}",
        show_cta=show_cta,
    )
