"""
Daily chat quotas per tier.

Built-in presets are the fail-safe: every field of a remote override is
validated on its own, and anything missing or invalid falls back to the
preset value for that exact field, never to zero.

Remote document fields (Sanity `chatUsageLimits`):
  freeSessionsPerDay, freeMessagesPerDay,
  authSessionsPerDay, authMessagesPerDay,
  sessionMinutes, cooldownHours  (shared by both tiers)
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class UsageLimits:
    sessions_per_day: int
    messages_per_day: int
    session_minutes: int
    cooldown_hours: int


@dataclass(frozen=True, slots=True)
class UsageLimitsConfig:
    free_limits: UsageLimits
    auth_limits: UsageLimits


FREE_LIMITS = UsageLimits(
    sessions_per_day=3,
    messages_per_day=20,
    session_minutes=30,
    cooldown_hours=1,
)

AUTH_LIMITS = UsageLimits(
    sessions_per_day=10,
    messages_per_day=50,
    session_minutes=30,
    cooldown_hours=1,
)

DEFAULT_USAGE_LIMITS = UsageLimitsConfig(
    free_limits=FREE_LIMITS,
    auth_limits=AUTH_LIMITS,
)


def _ensure_positive(value: Any, fallback: int) -> int:
    """Accept finite numbers >= 1 (numeric strings included); else fallback."""
    if value is None or isinstance(value, bool):
        return fallback
    try:
        candidate = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(candidate) or candidate < 1:
        return fallback
    return int(candidate)


def normalize_usage_limits(doc: Mapping[str, Any] | None = None) -> UsageLimitsConfig:
    """Merge a (possibly partial, possibly garbage) remote doc over the presets."""
    if not doc:
        return DEFAULT_USAGE_LIMITS

    free_limits = UsageLimits(
        sessions_per_day=_ensure_positive(
            doc.get("freeSessionsPerDay"), FREE_LIMITS.sessions_per_day
        ),
        messages_per_day=_ensure_positive(
            doc.get("freeMessagesPerDay"), FREE_LIMITS.messages_per_day
        ),
        session_minutes=_ensure_positive(
            doc.get("sessionMinutes"), FREE_LIMITS.session_minutes
        ),
        cooldown_hours=_ensure_positive(
            doc.get("cooldownHours"), FREE_LIMITS.cooldown_hours
        ),
    )

    auth_limits = UsageLimits(
        sessions_per_day=_ensure_positive(
            doc.get("authSessionsPerDay"), AUTH_LIMITS.sessions_per_day
        ),
        messages_per_day=_ensure_positive(
            doc.get("authMessagesPerDay"), AUTH_LIMITS.messages_per_day
        ),
        session_minutes=_ensure_positive(
            doc.get("sessionMinutes"), AUTH_LIMITS.session_minutes
        ),
        cooldown_hours=_ensure_positive(
            doc.get("cooldownHours"), AUTH_LIMITS.cooldown_hours
        ),
    )

    return UsageLimitsConfig(free_limits=free_limits, auth_limits=auth_limits)


def select_usage_limits(
    *,
    is_signed_in: bool,
    config: UsageLimitsConfig = DEFAULT_USAGE_LIMITS,
) -> UsageLimits:
    return config.auth_limits if is_signed_in else config.free_limits
