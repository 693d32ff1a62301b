"""
Pydantic v2 schemas for the chat usage API.

Wire format is camelCase (the browser chat widget consumes it directly);
Python attributes stay snake_case via the alias generator.

Separation:
  • UsageStatusResponse   — GET /api/chat/usage and message recording.
  • SessionCreateResponse — the opaque ChatKit client secret.
  • UsageLimitErrorBody   — 429 body when the session gate refuses.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class UsageStatusResponse(_CamelModel):
    """Remaining quota for the calling visitor."""

    sessions_remaining: int = Field(..., ge=0, examples=[2])
    messages_remaining: int = Field(..., ge=0, examples=[17])
    is_limited: bool
    is_session_blocked: bool
    is_message_blocked: bool
    cooldown_ends_at: int | None = Field(
        default=None,
        description="Unix seconds when the session quota resets; null when not blocked.",
        examples=[1767225600],
    )


class UsageLimitsBody(_CamelModel):
    sessions_per_day: int
    messages_per_day: int
    session_minutes: int
    cooldown_hours: int


class UsageLimitErrorBody(_CamelModel):
    """Structured refusal: enough to render remaining counts and a sign-in CTA."""

    code: Literal["USAGE_LIMIT"] = "USAGE_LIMIT"
    message: str = "Usage limit reached"
    tier: Literal["authenticated", "guest"]
    usage: UsageStatusResponse
    limits: UsageLimitsBody


class SessionCreateResponse(BaseModel):
    client_secret: str
