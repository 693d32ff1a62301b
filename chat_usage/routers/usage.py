"""
Usage router — remaining chat quota for the calling visitor.

GET  /api/chat/usage           read-only status poll
POST /api/chat/usage/messages  count one sent message, return new status

Without a usage store both return the unlimited projection against the
visitor's real limits.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from chat_usage.auth.dependencies import Context, get_visitor_identity
from chat_usage.auth.identity import VisitorIdentity
from chat_usage.core.context import UsageContext
from chat_usage.core.errors import UsageStoreError
from chat_usage.schemas.usage import UsageStatusResponse
from chat_usage.services.usage_limits import UsageLimits, select_usage_limits
from chat_usage.services.usage_status import (
    build_usage_status_response,
    create_unlimited_usage_status,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat Usage"])

Identity = Annotated[VisitorIdentity, Depends(get_visitor_identity)]

def _store_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Usage tracking is temporarily unavailable.",
    )


async def _limits_for(context: UsageContext, identity: VisitorIdentity) -> UsageLimits:
    return select_usage_limits(
        is_signed_in=identity.is_authenticated,
        config=await context.load_limits(),
    )


@router.get(
    "/usage",
    response_model=UsageStatusResponse,
    summary="Remaining chat sessions and messages for today",
)
async def get_usage(context: Context, identity: Identity) -> UsageStatusResponse:
    limits = await _limits_for(context, identity)

    if context.store is None:
        return build_usage_status_response(
            status=create_unlimited_usage_status(),
            limits=limits,
        )

    try:
        usage = await context.store.get_status(
            subject=identity.subject,
            sessions_per_day=limits.sessions_per_day,
            messages_per_day=limits.messages_per_day,
        )
    except UsageStoreError as exc:
        raise _store_unavailable() from exc

    return build_usage_status_response(status=usage, limits=limits)


@router.post(
    "/usage/messages",
    response_model=UsageStatusResponse,
    summary="Count one sent chat message",
    description=(
        "Called by the chat widget on each message.send event. "
        "A visitor already at the message cap is not counted again."
    ),
)
async def record_message(context: Context, identity: Identity) -> UsageStatusResponse:
    limits = await _limits_for(context, identity)

    if context.store is None:
        return build_usage_status_response(
            status=create_unlimited_usage_status(),
            limits=limits,
        )

    try:
        await context.store.record_message(
            subject=identity.subject,
            messages_per_day=limits.messages_per_day,
        )
        usage = await context.store.get_status(
            subject=identity.subject,
            sessions_per_day=limits.sessions_per_day,
            messages_per_day=limits.messages_per_day,
        )
    except UsageStoreError as exc:
        raise _store_unavailable() from exc

    return build_usage_status_response(status=usage, limits=limits)
