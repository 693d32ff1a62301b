"""
Alembic environment for the chat usage store.

The URL comes from USAGE_DATABASE_URL (or `alembic -x url=...`), never
from alembic.ini. Online migrations run through create_usage_engine(),
so SQLite gets the same pragmas and write locking as the app.
SQLite needs batch mode for ALTER TABLE.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection

from chat_usage.core.config import settings
from chat_usage.core.database import Base, create_usage_engine

# Populates Base.metadata for autogenerate
import chat_usage.models.usage  # noqa: F401

alembic_config = context.config

if alembic_config.config_file_name is not None:
    fileConfig(alembic_config.config_file_name)


def _usage_database_url() -> str:
    url = context.get_x_argument(as_dictionary=True).get("url") or settings.USAGE_DATABASE_URL
    url = url.strip()
    if not url:
        raise RuntimeError("USAGE_DATABASE_URL must be set to run migrations")
    return url


def _configure(**kwargs) -> None:  # type: ignore[no-untyped-def]
    context.configure(
        target_metadata=Base.metadata,
        compare_type=True,
        **kwargs,
    )


def run_offline() -> None:
    """Emit SQL to stdout without connecting."""
    url = _usage_database_url()
    _configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=url.startswith("sqlite"),
    )
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection: Connection) -> None:
    _configure(
        connection=connection,
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_online() -> None:
    engine = create_usage_engine(_usage_database_url())
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    asyncio.run(run_online())
