"""
OpenAI ChatKit client for creating chat sessions.

POST {CHATKIT_API_BASE}/chatkit/sessions returns a short-lived
client_secret that the browser-side ChatKit widget uses directly.

Configuration:
  OPENAI_API_KEY   — server-side only (never exposed to clients)
  CHATKIT_API_BASE — defaults to https://api.openai.com/v1

The HTTP timeout is the client's job; the session gate sets none.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from chat_usage.core.errors import UpstreamSessionError
from chat_usage.services.session_gate import (
    UpstreamErrorLogger,
    assert_client_secret,
    ensure_openai_session_ok,
)

logger = logging.getLogger(__name__)

_CHATKIT_BETA_HEADER = "chatkit_beta=v1"


async def create_chatkit_session(
    payload: dict[str, Any],
    *,
    api_key: str,
    api_base: str = "https://api.openai.com/v1",
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
    log: UpstreamErrorLogger | None = None,
) -> str:
    """
    Request a new ChatKit session.

    Args:
        payload: {"workflow": {"id": ...}, "user": subject}
        api_key: OpenAI API key.

    Returns:
        The session's client secret.

    Raises:
        UpstreamSessionError: transport failure, non-2xx, or bad body.
    """
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
        "OpenAI-Beta": _CHATKIT_BETA_HEADER,
    }

    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.post(
                f"{api_base.rstrip('/')}/chatkit/sessions",
                json=payload,
                headers=headers,
            )
    except httpx.HTTPError as exc:
        logger.error("ChatKit session request could not be sent: %s", exc)
        raise UpstreamSessionError("Failed to create session") from exc

    await ensure_openai_session_ok(response=response, log=log)

    try:
        data = response.json()
    except ValueError as exc:
        logger.error("ChatKit session response is not JSON: %s", exc)
        raise UpstreamSessionError("Failed to create session") from exc

    return assert_client_secret(data)
