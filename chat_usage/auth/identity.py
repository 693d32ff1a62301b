"""
Visitor identity resolution.

Turns request signals into the subject that usage is metered under:
  • authenticated — the auth provider's user id, as-is
  • guest         — salted fingerprint of (ip or visitor id, user agent)

Nothing in here reads headers, cookies or the environment directly; the
request boundary (chat_usage.auth.dependencies) passes values in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from chat_usage.auth.hashing import hash_visitor_fingerprint
from chat_usage.core.config import Settings
from chat_usage.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

Tier = Literal["authenticated", "guest"]

# Development-only salt. Never used when ENVIRONMENT is production.
DEV_USAGE_SALT = "chat-usage-dev-salt"


@dataclass(frozen=True, slots=True)
class VisitorIdentity:
    """The metered subject and the tier whose limits apply to it."""

    subject: str
    tier: Tier

    @property
    def is_authenticated(self) -> bool:
        return self.tier == "authenticated"


def build_visitor_identity(
    *,
    ip: str,
    user_agent: str,
    visitor_id: str,
    salt: str,
    auth_user_id: str | None = None,
) -> VisitorIdentity:
    """
    Derive the visitor identity. Pure: same inputs, same subject.

    A non-empty auth_user_id always wins. Otherwise the seed is the
    trimmed IP when present, else the client visitor id.
    """
    if auth_user_id:
        return VisitorIdentity(subject=auth_user_id, tier="authenticated")

    seed = ip.strip() or visitor_id
    subject = hash_visitor_fingerprint(salt, seed, user_agent)
    return VisitorIdentity(subject=subject, tier="guest")


def resolve_client_ip(
    *,
    forwarded_for: str | None,
    real_ip: str | None,
    trusted_proxy: bool,
) -> str:
    """
    Client IP from proxy headers, honored only behind a trusted proxy.

    Untrusted deployments get "" so guests fall back to the visitor id
    rather than a spoofable header.
    """
    if not trusted_proxy:
        return ""

    forwarded_ip = (forwarded_for or "").split(",")[0].strip()
    return forwarded_ip or (real_ip or "").strip()


def resolve_usage_salt(app_settings: Settings) -> str:
    """
    Read the fingerprint salt.

    Raises:
        ConfigurationError: USAGE_SALT is unset in production.
    """
    salt = app_settings.USAGE_SALT.strip()
    if salt:
        return salt

    if app_settings.is_production:
        raise ConfigurationError("USAGE_SALT is not set")

    logger.warning("USAGE_SALT is not set; using the development salt")
    return DEV_USAGE_SALT


class VisitorIdentityResolver:
    """Identity builder bound to one salt for the life of the process."""

    def __init__(self, salt: str) -> None:
        if not salt:
            raise ConfigurationError("Visitor identity salt must not be empty")
        self._salt = salt

    @classmethod
    def from_settings(cls, app_settings: Settings) -> VisitorIdentityResolver:
        return cls(resolve_usage_salt(app_settings))

    def build(
        self,
        *,
        ip: str,
        user_agent: str,
        visitor_id: str,
        auth_user_id: str | None = None,
    ) -> VisitorIdentity:
        return build_visitor_identity(
            ip=ip,
            user_agent=user_agent,
            visitor_id=visitor_id,
            salt=self._salt,
            auth_user_id=auth_user_id,
        )
