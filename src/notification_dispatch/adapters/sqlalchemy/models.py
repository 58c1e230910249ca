"""
SQLAlchemy models for the notification job store.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ...domain.envelope import Channel, EnvelopeStatus, Priority

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


class Base(DeclarativeBase):
    """Declarative base for notification dispatch tables."""


class NotificationJobModel(Base):
    """
    Persists notification envelopes.

    ``sequence`` is assigned once at enqueue and gives FIFO order inside a
    priority tier; retries keep it. ``priority_rank`` mirrors
    ``Priority.rank`` so the claim query can order numerically.
    """

    __tablename__ = "notification_jobs"

    sequence: Mapped[int] = mapped_column(
        Integer().with_variant(BigInteger, "postgresql"),
        primary_key=True,
        autoincrement=True,
    )
    id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    channel: Mapped[Channel] = mapped_column(Enum(Channel, native_enum=False))
    title: Mapped[str] = mapped_column(Text)
    body: Mapped[str] = mapped_column(Text)
    priority: Mapped[Priority] = mapped_column(Enum(Priority, native_enum=False))
    priority_rank: Mapped[int] = mapped_column(Integer)
    status: Mapped[EnvelopeStatus] = mapped_column(
        Enum(EnvelopeStatus, native_enum=False),
        default=EnvelopeStatus.PENDING,
        index=True,
    )

    attempt_count: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    last_attempt_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    next_visible_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    lease_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    correlation_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True, index=True
    )
    job_metadata: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    __table_args__ = (
        Index("ix_notification_jobs_claim", "status", "priority_rank", "sequence"),
        Index("ix_notification_jobs_lease", "status", "lease_expires_at"),
    )


async def create_schema(engine: AsyncEngine) -> None:
    """Create the notification tables if they do not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
