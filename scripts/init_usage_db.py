"""
Dev bootstrap script — create the usage tables for local development.

Usage:
    USAGE_DATABASE_URL=sqlite+aiosqlite:///./usage.sqlite \
        python -m scripts.init_usage_db

This will:
  1. Create usage_visitors and usage_records if missing
  2. Print how many visitors and records the store holds

Production databases should be migrated with `alembic upgrade head`.
"""

import asyncio
import sys

# Ensure the project root is on the path
sys.path.insert(0, ".")

from sqlalchemy import func, select

from chat_usage.core.config import settings
from chat_usage.core.database import (
    create_session_factory,
    create_usage_engine,
    ensure_usage_schema,
)
from chat_usage.models.usage import UsageRecord, UsageVisitor


async def main() -> int:
    if not settings.is_usage_db_configured:
        print("USAGE_DATABASE_URL is not set — nothing to initialize.")
        return 1

    engine = create_usage_engine(settings.USAGE_DATABASE_URL.strip())
    try:
        await ensure_usage_schema(engine)

        async with create_session_factory(engine)() as session:
            visitors = await session.scalar(select(func.count()).select_from(UsageVisitor))
            records = await session.scalar(select(func.count()).select_from(UsageRecord))
    finally:
        await engine.dispose()

    # ── Print results ───────────────────────────────────────
    print()
    print("=" * 60)
    print("  Usage Store Ready")
    print("=" * 60)
    print()
    print(f"  Visitors:   {visitors}")
    print(f"  Records:    {records}")
    print("=" * 60)
    print()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
