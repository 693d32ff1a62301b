"""
SQLAlchemy models for chat usage accounting.

Two tables:
  • usage_visitors — one row per subject, upserted on every accounting
    operation to track recency (not used for quota math).
  • usage_records  — append-only events, one per granted session or sent
    message. Rows are never updated or deleted here.

Design notes:
  • Timestamps are unix seconds (BIGINT) so day windows compare as plain
    integers on every backend.
  • `kind` is a separate indexed column; record ids are random UUIDs and
    never encode the kind.
  • The (subject, kind, occurred_at) index serves the daily count query.
"""

import uuid

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from chat_usage.core.database import Base

KIND_SESSION = "session"
KIND_MESSAGE = "message"


class UsageVisitor(Base):
    """One metered subject (hashed guest fingerprint or auth user id)."""

    __tablename__ = "usage_visitors"

    subject: Mapped[str] = mapped_column(String(255), primary_key=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    last_seen_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def __repr__(self) -> str:
        return f"<UsageVisitor subject={self.subject:.12} last_seen={self.last_seen_at}>"


class UsageRecord(Base):
    """One granted chat session or one sent message."""

    __tablename__ = "usage_records"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    subject: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("usage_visitors.subject", ondelete="CASCADE"),
        nullable=False,
    )
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    occurred_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "kind IN ('session', 'message')",
            name="ck_usage_records_kind_valid",
        ),
        Index("ix_usage_records_kind", "kind"),
        Index("ix_usage_records_subject_kind_time", "subject", "kind", "occurred_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<UsageRecord id={self.id!s:.8} kind={self.kind} "
            f"at={self.occurred_at}>"
        )
