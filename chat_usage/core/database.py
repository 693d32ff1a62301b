"""
Async database engine, session factory, and ORM base.

Rules enforced:
  • Every DB call goes through AsyncSession.
  • Sessions are scoped to one logical store operation and always closed.
  • The declarative Base is shared across all models so Alembic can
    auto-detect schema changes from a single metadata object.
  • On SQLite every transaction opens with BEGIN IMMEDIATE so that
    count-then-insert sequences hold the write lock from the start.
"""

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

# Seconds a SQLite writer waits for the lock before giving up
_SQLITE_BUSY_TIMEOUT = 30


# ── ORM Base ────────────────────────────────────────────────
class Base(DeclarativeBase):
    """Shared declarative base for all SQLAlchemy models."""


# ── Engine ──────────────────────────────────────────────────
def create_usage_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """
    Build the async engine for the usage store.

    pool_pre_ping: drop stale connections before reuse
    echo: SQL logging — only in debug mode
    """
    if make_url(url).get_backend_name() != "sqlite":
        return create_async_engine(url, echo=echo, pool_pre_ping=True)

    engine = create_async_engine(
        url,
        echo=echo,
        connect_args={"timeout": _SQLITE_BUSY_TIMEOUT},
    )
    _install_sqlite_hooks(engine)
    return engine


def _install_sqlite_hooks(engine: AsyncEngine) -> None:
    """Take over transaction control from the sqlite3 driver."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _record) -> None:  # type: ignore[no-untyped-def]
        # Disable the driver's implicit BEGIN; we emit our own below.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn) -> None:  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN IMMEDIATE")


# ── Session factory ─────────────────────────────────────────
def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,  # avoid lazy-load issues after commit
    )


# ── Schema ──────────────────────────────────────────────────
async def ensure_usage_schema(engine: AsyncEngine) -> None:
    """Create the usage tables if they do not exist yet. Idempotent."""
    # Import models so Base.metadata is fully populated
    import chat_usage.models.usage  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
