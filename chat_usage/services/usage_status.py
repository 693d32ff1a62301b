"""
Client-facing projection of a subject's usage status.

Read-only: nothing here touches the store. When the store is not
configured, callers project create_unlimited_usage_status() against the
caller's real limits, so the UI shows full quotas instead of zeros.
"""

from __future__ import annotations

from chat_usage.schemas.usage import UsageStatusResponse
from chat_usage.services.usage_limits import UsageLimits
from chat_usage.services.usage_store import UsageStatus


def normalize_usage_status(
    *,
    sessions_remaining: int,
    messages_remaining: int,
    is_session_blocked: bool | None = None,
    is_message_blocked: bool | None = None,
    cooldown_ends_at: int | None = None,
) -> UsageStatusResponse:
    """
    Clamp remaining counts and derive the limited flags.

    Explicit blocked flags win; they are only derived from the remaining
    counts when absent.
    """
    safe_sessions = max(0, sessions_remaining)
    safe_messages = max(0, messages_remaining)
    session_blocked = (
        is_session_blocked if is_session_blocked is not None else safe_sessions <= 0
    )
    message_blocked = (
        is_message_blocked if is_message_blocked is not None else safe_messages <= 0
    )

    return UsageStatusResponse(
        sessions_remaining=safe_sessions,
        messages_remaining=safe_messages,
        is_limited=session_blocked or message_blocked,
        is_session_blocked=session_blocked,
        is_message_blocked=message_blocked,
        cooldown_ends_at=cooldown_ends_at,
    )


def build_usage_status_response(
    *,
    status: UsageStatus,
    limits: UsageLimits,
) -> UsageStatusResponse:
    return normalize_usage_status(
        sessions_remaining=limits.sessions_per_day - status.sessions_today,
        messages_remaining=limits.messages_per_day - status.messages_today,
        is_session_blocked=status.is_session_blocked,
        is_message_blocked=status.is_message_blocked,
        cooldown_ends_at=status.cooldown_ends_at,
    )


def create_unlimited_usage_status() -> UsageStatus:
    """Zero usage, never blocked. Used when no usage store is configured."""
    return UsageStatus(
        sessions_today=0,
        messages_today=0,
        is_session_blocked=False,
        is_message_blocked=False,
        cooldown_ends_at=None,
    )
