"""
Durable per-subject daily usage accounting.

Counts append-only usage_records rows for the current local calendar day
and decides whether a subject is session- or message-blocked.

Design decisions:
  • Check BEFORE insert, inside ONE transaction. Blocked subjects are a
    no-op (returns False), never an exception.
  • Race safety comes from the database, not from in-process locks:
      – PostgreSQL: the visitor upsert is the first statement, and
        INSERT … ON CONFLICT DO UPDATE row-locks the visitor row, so
        concurrent transactions for one subject queue behind each other
        and the following count sees committed rows.
      – SQLite: transactions open with BEGIN IMMEDIATE (see
        chat_usage.core.database), which takes the write lock up front.
  • Day window = [local midnight, next local midnight) in unix seconds,
    computed per call. No caching between calls.
  • One session per store operation, closed on every exit path. Writes
    are shielded so a cancelled request never abandons a transaction.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chat_usage.core.errors import ConfigurationError, UsageStoreError
from chat_usage.models.usage import (
    KIND_MESSAGE,
    KIND_SESSION,
    UsageRecord,
    UsageVisitor,
)

logger = logging.getLogger(__name__)

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

# Message accounting ignores the session cap
_UNLIMITED = 2**63 - 1


@dataclass(frozen=True, slots=True)
class UsageStatus:
    """Derived, never persisted. Recomputed from usage_records on each read."""

    sessions_today: int
    messages_today: int
    is_session_blocked: bool
    is_message_blocked: bool
    cooldown_ends_at: int | None


def day_window(now: float) -> tuple[int, int]:
    """(start_of_day, start_of_next_day) for the server's local calendar day."""
    today = datetime.datetime.fromtimestamp(now).date()
    start = datetime.datetime.combine(today, datetime.time.min)
    next_start = datetime.datetime.combine(
        today + datetime.timedelta(days=1), datetime.time.min
    )
    return int(start.timestamp()), int(next_start.timestamp())


async def _count_today(
    session: AsyncSession,
    subject: str,
    day_start: int,
    day_end: int,
) -> dict[str, int]:
    """Per-kind record counts for one subject inside the day window."""
    stmt = (
        select(UsageRecord.kind, func.count())
        .where(
            UsageRecord.subject == subject,
            UsageRecord.occurred_at >= day_start,
            UsageRecord.occurred_at < day_end,
        )
        .group_by(UsageRecord.kind)
    )
    result = await session.execute(stmt)
    return {kind: count for kind, count in result.all()}


async def _read_status(
    session: AsyncSession,
    subject: str,
    sessions_per_day: int,
    messages_per_day: int,
    now: float,
) -> UsageStatus:
    day_start, day_end = day_window(now)
    counts = await _count_today(session, subject, day_start, day_end)

    sessions_today = counts.get(KIND_SESSION, 0)
    messages_today = counts.get(KIND_MESSAGE, 0)
    is_session_blocked = sessions_today >= sessions_per_day

    return UsageStatus(
        sessions_today=sessions_today,
        messages_today=messages_today,
        is_session_blocked=is_session_blocked,
        is_message_blocked=messages_today >= messages_per_day,
        cooldown_ends_at=day_end if is_session_blocked else None,
    )


async def _touch_visitor(session: AsyncSession, subject: str, now: int) -> None:
    """Insert the visitor row or bump last_seen_at."""
    dialect = session.get_bind().dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise ConfigurationError(f"Unsupported usage store backend: {dialect}")

    stmt = insert(UsageVisitor).values(
        subject=subject,
        created_at=now,
        last_seen_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[UsageVisitor.subject],
        set_={"last_seen_at": stmt.excluded.last_seen_at},
    )
    await session.execute(stmt)


class UsageStore:
    """Usage accounting over an async session factory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def get_status(
        self,
        *,
        subject: str,
        sessions_per_day: int,
        messages_per_day: int,
    ) -> UsageStatus:
        """Pure read of today's counts for one subject."""
        try:
            async with self._session_factory() as session:
                return await _read_status(
                    session, subject, sessions_per_day, messages_per_day, self._clock()
                )
        except SQLAlchemyError as exc:
            logger.exception("Usage status read failed")
            raise UsageStoreError("Usage store is unavailable") from exc

    async def record_session(
        self,
        *,
        subject: str,
        sessions_per_day: int,
        messages_per_day: int,
    ) -> bool:
        """
        Record one granted session unless the subject is session-blocked.

        Returns True if a record was inserted, False if blocked (no-op).
        """
        return await asyncio.shield(
            self._record(
                subject,
                KIND_SESSION,
                sessions_per_day=sessions_per_day,
                messages_per_day=messages_per_day,
            )
        )

    async def record_message(
        self,
        *,
        subject: str,
        messages_per_day: int,
    ) -> bool:
        """
        Record one sent message unless the subject is message-blocked.

        The session cap does not gate messages.
        """
        return await asyncio.shield(
            self._record(
                subject,
                KIND_MESSAGE,
                sessions_per_day=_UNLIMITED,
                messages_per_day=messages_per_day,
            )
        )

    async def _record(
        self,
        subject: str,
        kind: str,
        *,
        sessions_per_day: int,
        messages_per_day: int,
    ) -> bool:
        now = int(self._clock())
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    # Upsert first: this takes the per-subject lock.
                    await _touch_visitor(session, subject, now)
                    status = await _read_status(
                        session, subject, sessions_per_day, messages_per_day, now
                    )
                    blocked = (
                        status.is_session_blocked
                        if kind == KIND_SESSION
                        else status.is_message_blocked
                    )
                    if blocked:
                        logger.debug("Skipped %s record: subject is blocked", kind)
                        return False

                    session.add(UsageRecord(subject=subject, kind=kind, occurred_at=now))
        except SQLAlchemyError as exc:
            logger.exception("Usage %s record failed", kind)
            raise UsageStoreError("Usage store is unavailable") from exc

        return True
