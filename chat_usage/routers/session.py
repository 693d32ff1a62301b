"""
Chat session router — issues ChatKit client secrets through the usage gate.

POST /api/chat/session
  1. Resolves the visitor identity.
  2. Enforces the daily session quota (429 with structured detail).
  3. Creates the upstream ChatKit session.
  4. Returns the client secret.

Configuration, store and upstream failures all surface as generic
messages; the specifics are in the server log only.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from chat_usage.auth.dependencies import Context, get_visitor_identity
from chat_usage.auth.identity import VisitorIdentity
from chat_usage.core.errors import (
    ConfigurationError,
    UpstreamSessionError,
    UsageStoreError,
)
from chat_usage.schemas.usage import (
    SessionCreateResponse,
    UsageLimitErrorBody,
    UsageLimitsBody,
)
from chat_usage.services.session_gate import UsageLimitError
from chat_usage.services.session_service import create_session
from chat_usage.services.usage_status import build_usage_status_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat Session"])

Identity = Annotated[VisitorIdentity, Depends(get_visitor_identity)]


def _usage_limit_response(exc: UsageLimitError, identity: VisitorIdentity) -> JSONResponse:
    details = exc.details
    body = UsageLimitErrorBody(
        tier=identity.tier,
        usage=build_usage_status_response(status=details.status, limits=details.limits),
        limits=UsageLimitsBody(
            sessions_per_day=details.limits.sessions_per_day,
            messages_per_day=details.limits.messages_per_day,
            session_minutes=details.limits.session_minutes,
            cooldown_hours=details.limits.cooldown_hours,
        ),
    )
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=body.model_dump(mode="json", by_alias=True),
    )


@router.post(
    "/session",
    response_model=SessionCreateResponse,
    summary="Create a metered ChatKit session",
    responses={429: {"model": UsageLimitErrorBody}},
)
async def create_chat_session(context: Context, identity: Identity):
    try:
        client_secret = await create_session(context, identity)
    except UsageLimitError as exc:
        logger.info("Session refused for %s visitor: daily limit reached", identity.tier)
        return _usage_limit_response(exc, identity)
    except (ConfigurationError, UsageStoreError) as exc:
        logger.error("Chat session unavailable: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chat is temporarily unavailable.",
        ) from exc
    except UpstreamSessionError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to create session.",
        ) from exc

    return SessionCreateResponse(client_secret=client_secret)
