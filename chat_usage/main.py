"""
FastAPI application entrypoint.

Lifespan:
  • On startup: build the usage context; when a usage store is configured,
    create its schema (USAGE_AUTO_MIGRATE) and verify connectivity.
  • On shutdown: dispose the engine cleanly.

Routers:
  • /api/chat/usage   — remaining quota (read) and message counting
  • /api/chat/session — metered ChatKit session creation
  • /health           — shallow liveness probe
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from sqlalchemy import text

from chat_usage.core.config import Settings, settings
from chat_usage.core.context import build_usage_context
from chat_usage.core.database import ensure_usage_schema
from chat_usage.routers.session import router as session_router
from chat_usage.routers.usage import router as usage_router

logger = logging.getLogger(__name__)


def create_app(
    app_settings: Settings | None = None,
    *,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    app_settings = app_settings or settings

    logging.basicConfig(
        level=logging.DEBUG if app_settings.DEBUG else logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )

    # ── Lifespan ────────────────────────────────────────────
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Startup / shutdown lifecycle."""
        # Fails fast on a missing production salt
        context = build_usage_context(app_settings, http_transport=http_transport)
        app.state.usage_context = context

        if context.engine is None:
            logger.warning(
                "USAGE_DATABASE_URL is not set — chat usage is NOT metered."
            )
        else:
            try:
                if app_settings.USAGE_AUTO_MIGRATE:
                    await ensure_usage_schema(context.engine)
                async with context.engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
                logger.info("Usage store connection verified ✓")
            except Exception:
                logger.warning(
                    "Could not reach the usage store on startup. "
                    "The app will start, but metered requests will fail "
                    "until the store is available."
                )

        yield  # ← application runs here

        await context.dispose()
        logger.info("Usage store disposed ✓")

    # ── App ─────────────────────────────────────────────────
    app = FastAPI(
        title=app_settings.APP_NAME,
        version="0.1.0",
        description="Daily usage metering for the portfolio chat assistant.",
        lifespan=lifespan,
    )

    app.include_router(usage_router, prefix="/api/chat")
    app.include_router(session_router, prefix="/api/chat")

    # ── Health check ────────────────────────────────────────
    @app.get(
        "/health",
        tags=["System"],
        summary="Liveness probe",
    )
    async def health_check() -> dict[str, str]:
        """Shallow health check — confirms the process is alive."""
        return {"status": "healthy"}

    return app


app = create_app()
