"""
Application context — everything a request needs, built once at startup.

Holds the only state shared across requests: the time-boxed limits cache.
The usage store is None when USAGE_DATABASE_URL is empty (unlimited mode).
Routers reach it through get_usage_context(), never through globals.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine

from chat_usage.auth.identity import VisitorIdentityResolver
from chat_usage.core.config import Settings
from chat_usage.core.database import (
    create_session_factory,
    create_usage_engine,
)
from chat_usage.services.limits_source import UsageLimitsCache, load_usage_limits_config
from chat_usage.services.usage_limits import UsageLimitsConfig
from chat_usage.services.usage_store import UsageStore


@dataclass
class UsageContext:
    settings: Settings
    identity_resolver: VisitorIdentityResolver
    limits_cache: UsageLimitsCache
    engine: AsyncEngine | None = None
    store: UsageStore | None = None
    # Injected in tests; None means real network I/O
    http_transport: httpx.AsyncBaseTransport | None = None

    async def load_limits(self) -> UsageLimitsConfig:
        return await load_usage_limits_config(
            self.settings,
            self.limits_cache,
            transport=self.http_transport,
        )

    async def dispose(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()


def build_usage_context(
    app_settings: Settings,
    *,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> UsageContext:
    """
    Wire settings into a context.

    Raises:
        ConfigurationError: USAGE_SALT missing in production.
    """
    context = UsageContext(
        settings=app_settings,
        identity_resolver=VisitorIdentityResolver.from_settings(app_settings),
        limits_cache=UsageLimitsCache(ttl_seconds=app_settings.USAGE_LIMITS_TTL_SECONDS),
        http_transport=http_transport,
    )

    if app_settings.is_usage_db_configured:
        engine = create_usage_engine(
            app_settings.USAGE_DATABASE_URL.strip(),
            echo=app_settings.DEBUG,
        )
        context.engine = engine
        context.store = UsageStore(create_session_factory(engine))

    return context


def get_usage_context(request: Request) -> UsageContext:
    """FastAPI dependency — the context stored on app.state at startup."""
    return request.app.state.usage_context
