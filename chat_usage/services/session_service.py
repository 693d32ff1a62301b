"""
Create-session use case: config check → limits → gate → ChatKit.

Order matters: the usage gate runs BEFORE the paid upstream call, so a
throttled visitor never costs anything.
"""

from __future__ import annotations

import logging

from chat_usage.auth.identity import VisitorIdentity
from chat_usage.core.context import UsageContext
from chat_usage.core.errors import ConfigurationError
from chat_usage.services.chatkit_client import create_chatkit_session
from chat_usage.services.session_gate import build_session_payload, enforce_session_usage
from chat_usage.services.usage_limits import select_usage_limits

logger = logging.getLogger(__name__)


async def create_session(context: UsageContext, identity: VisitorIdentity) -> str:
    """
    Issue a ChatKit client secret for this visitor.

    Raises:
        ConfigurationError: OPENAI_API_KEY or CHATKIT_WORKFLOW_ID missing.
        UsageLimitError: the visitor has no sessions left today.
        UsageStoreError: the usage store failed.
        UpstreamSessionError: ChatKit refused or returned garbage.
    """
    app_settings = context.settings

    api_key = app_settings.OPENAI_API_KEY.strip()
    if not api_key:
        raise ConfigurationError("OPENAI_API_KEY not configured")

    workflow_id = app_settings.CHATKIT_WORKFLOW_ID.strip()
    if not workflow_id:
        raise ConfigurationError("CHATKIT_WORKFLOW_ID not configured")

    limits = select_usage_limits(
        is_signed_in=identity.is_authenticated,
        config=await context.load_limits(),
    )

    if context.store is None:
        logger.debug("Usage store not configured; session is not metered")
    else:
        await enforce_session_usage(
            store=context.store,
            subject=identity.subject,
            limits=limits,
        )

    payload = build_session_payload(workflow_id=workflow_id, identity=identity)
    return await create_chatkit_session(
        payload,
        api_key=api_key,
        api_base=app_settings.CHATKIT_API_BASE,
        timeout=app_settings.HTTP_TIMEOUT_SECONDS,
        transport=context.http_transport,
    )
