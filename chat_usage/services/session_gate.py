"""
Session gate — the single choke point for new chat sessions.

Flow:
  1. Read today's status for the subject.
  2. Session-blocked → raise UsageLimitError (carries subject/status/limits
     so the caller can render remaining counts and a sign-in prompt).
  3. Otherwise record the session in the store's atomic transaction.
     If that transaction finds the cap already reached (a concurrent
     request won), the gate refuses too.

Also holds the pure/validation helpers around the upstream ChatKit call.
Provider error bodies are logged here and never reach the client.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from chat_usage.auth.identity import VisitorIdentity
from chat_usage.core.errors import UpstreamSessionError
from chat_usage.services.usage_limits import UsageLimits
from chat_usage.services.usage_store import UsageStatus

logger = logging.getLogger(__name__)

USAGE_LIMIT_CODE = "USAGE_LIMIT"

UpstreamErrorLogger = Callable[[str, Mapping[str, Any]], None]


class SessionUsageStore(Protocol):
    async def get_status(
        self, *, subject: str, sessions_per_day: int, messages_per_day: int
    ) -> UsageStatus: ...

    async def record_session(
        self, *, subject: str, sessions_per_day: int, messages_per_day: int
    ) -> bool: ...


@dataclass(frozen=True, slots=True)
class UsageLimitDetails:
    subject: str
    status: UsageStatus
    limits: UsageLimits


class UsageLimitError(Exception):
    """The subject has used up today's chat sessions.

    Expected and recoverable by the user (sign in or wait for the
    cooldown). Branch on `code`, not on the message text.
    """

    code = USAGE_LIMIT_CODE

    def __init__(self, details: UsageLimitDetails) -> None:
        super().__init__("Usage limit reached")
        self.details = details


def map_usage_limit_error(details: UsageLimitDetails) -> UsageLimitError:
    return UsageLimitError(details)


async def enforce_session_usage(
    *,
    store: SessionUsageStore,
    subject: str,
    limits: UsageLimits,
) -> UsageStatus:
    """
    Admit or reject one new chat session.

    Returns the pre-grant status on success.

    Raises:
        UsageLimitError: the subject is session-blocked for today.
    """
    status = await store.get_status(
        subject=subject,
        sessions_per_day=limits.sessions_per_day,
        messages_per_day=limits.messages_per_day,
    )
    if status.is_session_blocked:
        raise map_usage_limit_error(
            UsageLimitDetails(subject=subject, status=status, limits=limits)
        )

    recorded = await store.record_session(
        subject=subject,
        sessions_per_day=limits.sessions_per_day,
        messages_per_day=limits.messages_per_day,
    )
    if not recorded:
        # Lost the race to a concurrent request between read and record
        latest = await store.get_status(
            subject=subject,
            sessions_per_day=limits.sessions_per_day,
            messages_per_day=limits.messages_per_day,
        )
        raise map_usage_limit_error(
            UsageLimitDetails(subject=subject, status=latest, limits=limits)
        )

    return status


def build_session_payload(*, workflow_id: str, identity: VisitorIdentity) -> dict[str, Any]:
    return {
        "workflow": {"id": workflow_id},
        "user": identity.subject,
    }


def _log_upstream_error(message: str, details: Mapping[str, Any]) -> None:
    logger.error("%s: %s", message, dict(details))


async def ensure_openai_session_ok(
    *,
    response: httpx.Response,
    log: UpstreamErrorLogger | None = None,
) -> None:
    """
    Treat any non-2xx session response as fatal for this request.

    Raises:
        UpstreamSessionError: generic; the provider body is only logged.
    """
    if response.is_success:
        return

    await response.aread()
    (log or _log_upstream_error)(
        "OpenAI ChatKit session request failed",
        {
            "status": response.status_code,
            "status_text": response.reason_phrase,
            "error": response.text[:500],
        },
    )
    raise UpstreamSessionError("Failed to create session")


def assert_client_secret(data: Any) -> str:
    """Extract client_secret from the session response body."""
    if not isinstance(data, dict) or not isinstance(data.get("client_secret"), str):
        raise UpstreamSessionError("OpenAI session response missing client_secret")
    return data["client_secret"]
