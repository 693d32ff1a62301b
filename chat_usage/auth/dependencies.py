"""
FastAPI dependency resolving the calling visitor's identity.

Flow:
  1. Read the authenticated user id from AUTH_USER_HEADER (trusted proxy
     deployments only; the auth layer in front of us sets it)
  2. Resolve the client IP from X-Forwarded-For / X-Real-IP (trusted
     proxy deployments only)
  3. Read the visitor_id cookie, minting one if the browser has none
  4. Hash into a VisitorIdentity

This is the only place request headers and cookies are read; everything
below it takes plain arguments.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, Header, Request, Response

from chat_usage.auth.cookies import read_visitor_id, set_visitor_id_cookie
from chat_usage.auth.hashing import generate_visitor_id
from chat_usage.auth.identity import VisitorIdentity, resolve_client_ip
from chat_usage.core.context import UsageContext, get_usage_context

logger = logging.getLogger(__name__)

Context = Annotated[UsageContext, Depends(get_usage_context)]


def _auth_user_id(request: Request, context: UsageContext) -> str | None:
    header_name = context.settings.AUTH_USER_HEADER
    if not header_name or not context.settings.TRUSTED_PROXY:
        return None
    return request.headers.get(header_name, "").strip() or None


async def get_visitor_identity(
    request: Request,
    response: Response,
    context: Context,
    user_agent: str = Header(default=""),
    x_forwarded_for: str | None = Header(default=None),
    x_real_ip: str | None = Header(default=None),
) -> VisitorIdentity:
    """
    FastAPI dependency — resolves request signals to a VisitorIdentity.

    Usage in routers:
        Identity = Annotated[VisitorIdentity, Depends(get_visitor_identity)]

    Never raises for missing optional inputs: empty IP, empty visitor id
    and empty user agent all degrade to a stable guest fingerprint.
    """
    visitor_id = read_visitor_id(request)
    if not visitor_id:
        visitor_id = generate_visitor_id()
        set_visitor_id_cookie(
            response,
            visitor_id,
            secure=request.url.scheme == "https",
        )

    ip = resolve_client_ip(
        forwarded_for=x_forwarded_for,
        real_ip=x_real_ip,
        trusted_proxy=context.settings.TRUSTED_PROXY,
    )

    return context.identity_resolver.build(
        ip=ip,
        user_agent=user_agent,
        visitor_id=visitor_id,
        auth_user_id=_auth_user_id(request, context),
    )
