"""
SQLAlchemy implementation of the notification queue.
"""

from __future__ import annotations

import contextlib
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, or_, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ...domain.envelope import (
    TERMINAL_STATUSES,
    EnvelopeStatus,
    NotificationEnvelope,
)
from ...primitives.exceptions import EnvelopeStateError, QueueUnavailableError
from ..base import DEFAULT_LEASE_SECONDS, BaseNotificationQueue
from .models import NotificationJobModel

if TYPE_CHECKING:
    import builtins
    from collections.abc import AsyncIterator, Callable, Iterable

    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from ...instrumentation import HookRegistry
    from ...retry import RetryPolicy

logger = logging.getLogger("notification_dispatch.queue.sqlalchemy")

# Dialects that support SELECT ... FOR UPDATE SKIP LOCKED.
_ROW_LOCKING_DIALECTS = frozenset({"postgresql", "mysql", "mariadb"})


def _as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SQLAlchemyNotificationQueue(BaseNotificationQueue):
    """
    Durable queue over a single ``notification_jobs`` table.

    Every public operation runs in its own transaction. Claims are made with a
    conditional ``UPDATE`` guarded on the row's observed ``status`` and
    ``attempt_count``, so two workers racing for the same row cannot both win;
    on PostgreSQL and MySQL the candidate ``SELECT`` additionally uses
    ``FOR UPDATE SKIP LOCKED`` so concurrent workers spread across rows.

    Store errors surface as ``QueueUnavailableError``; unique-key conflicts as
    ``EnvelopeStateError``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        retry_policy: RetryPolicy | None = None,
        *,
        lease_seconds: float = DEFAULT_LEASE_SECONDS,
        clock: Callable[[], datetime] | None = None,
        hooks: HookRegistry | None = None,
        claim_batch_size: int = 10,
    ) -> None:
        super().__init__(
            retry_policy, lease_seconds=lease_seconds, clock=clock, hooks=hooks
        )
        if claim_batch_size < 1:
            raise ValueError("claim_batch_size must be >= 1")
        self._session_factory = session_factory
        self.claim_batch_size = claim_batch_size

    # -- mapping ----------------------------------------------------------

    @staticmethod
    def _values(envelope: NotificationEnvelope) -> dict[str, Any]:
        return {
            "id": envelope.id,
            "user_id": envelope.user_id,
            "channel": envelope.channel,
            "title": envelope.title,
            "body": envelope.body,
            "priority": envelope.priority,
            "priority_rank": envelope.priority.rank,
            "status": envelope.status,
            "attempt_count": envelope.attempt_count,
            "max_attempts": envelope.max_attempts,
            "created_at": envelope.created_at,
            "updated_at": envelope.updated_at,
            "last_attempt_at": envelope.last_attempt_at,
            "next_visible_at": envelope.next_visible_at,
            "last_error": envelope.last_error,
            "correlation_id": envelope.correlation_id,
            "job_metadata": dict(envelope.metadata),
        }

    def to_model(self, envelope: NotificationEnvelope) -> NotificationJobModel:
        return NotificationJobModel(**self._values(envelope))

    def from_model(self, model: NotificationJobModel) -> NotificationEnvelope:
        return NotificationEnvelope(
            id=model.id,
            user_id=model.user_id,
            channel=model.channel,
            title=model.title,
            body=model.body,
            priority=model.priority,
            status=model.status,
            attempt_count=model.attempt_count,
            max_attempts=model.max_attempts,
            created_at=_as_utc(model.created_at),
            updated_at=_as_utc(model.updated_at),
            last_attempt_at=_as_utc(model.last_attempt_at),
            next_visible_at=_as_utc(model.next_visible_at),
            last_error=model.last_error,
            correlation_id=model.correlation_id,
            metadata=dict(model.job_metadata or {}),
        )

    # -- session helpers --------------------------------------------------

    @contextlib.asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session, session.begin():
                yield session
        except IntegrityError as e:
            raise EnvelopeStateError(f"Conflicting notification job: {e.orig}") from e
        except (SQLAlchemyError, OSError) as e:
            raise QueueUnavailableError(f"Notification store unavailable: {e}") from e

    def _lock_rows(
        self, stmt: Select[tuple[NotificationJobModel]], session: AsyncSession
    ) -> Select[tuple[NotificationJobModel]]:
        # Rows may already sit in the identity map with stale state.
        stmt = stmt.execution_options(populate_existing=True)
        if session.get_bind().dialect.name in _ROW_LOCKING_DIALECTS:
            return stmt.with_for_update(skip_locked=True)
        return stmt

    async def _load(
        self, session: AsyncSession, envelope_id: str
    ) -> NotificationJobModel | None:
        stmt = select(NotificationJobModel).where(NotificationJobModel.id == envelope_id)
        return await session.scalar(stmt)

    async def _guarded_update(
        self,
        session: AsyncSession,
        observed: NotificationJobModel,
        envelope: NotificationEnvelope,
        lease_expires_at: datetime | None = None,
    ) -> bool:
        """Write ``envelope`` only if the row still matches what was read."""
        stmt = (
            update(NotificationJobModel)
            .where(
                NotificationJobModel.sequence == observed.sequence,
                NotificationJobModel.status == observed.status,
                NotificationJobModel.attempt_count == observed.attempt_count,
            )
            .values(**self._values(envelope), lease_expires_at=lease_expires_at)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0) == 1

    # -- storage primitives -----------------------------------------------

    async def _enqueue(
        self, envelope: NotificationEnvelope, now: datetime
    ) -> NotificationEnvelope:
        async with self._transaction() as session:
            session.add(self.to_model(envelope))
            await session.flush()
        return envelope

    async def _dequeue(
        self, now: datetime
    ) -> tuple[NotificationEnvelope | None, list[NotificationEnvelope]]:
        async with self._transaction() as session:
            reclaimed = await self._reclaim_expired(session, now)
            claimed = await self._claim_next(session, now)
        return claimed, reclaimed

    async def _reclaim_expired(
        self, session: AsyncSession, now: datetime
    ) -> list[NotificationEnvelope]:
        stmt = self._lock_rows(
            select(NotificationJobModel).where(
                NotificationJobModel.status == EnvelopeStatus.IN_FLIGHT,
                NotificationJobModel.lease_expires_at <= now,
            ),
            session,
        )
        reclaimed: list[NotificationEnvelope] = []
        for model in (await session.scalars(stmt)).all():
            resolved = self._resolve_expired_lease(self.from_model(model), now)
            if await self._guarded_update(session, model, resolved):
                reclaimed.append(resolved)
        return reclaimed

    async def _claim_next(
        self, session: AsyncSession, now: datetime
    ) -> NotificationEnvelope | None:
        stmt = self._lock_rows(
            select(NotificationJobModel)
            .where(
                NotificationJobModel.status == EnvelopeStatus.PENDING,
                or_(
                    NotificationJobModel.next_visible_at.is_(None),
                    NotificationJobModel.next_visible_at <= now,
                ),
            )
            .order_by(
                NotificationJobModel.priority_rank, NotificationJobModel.sequence
            )
            .limit(self.claim_batch_size),
            session,
        )
        for model in (await session.scalars(stmt)).all():
            envelope = self.from_model(model).begin_attempt(now)
            if await self._guarded_update(
                session, model, envelope, self._lease_deadline(now)
            ):
                return envelope
            logger.debug("Lost claim race for notification %s", model.id)
        return None

    async def _acknowledge(
        self, envelope_id: str, attempt: int | None, now: datetime
    ) -> tuple[NotificationEnvelope | None, bool]:
        async with self._transaction() as session:
            model = await self._load(session, envelope_id)
            if model is None:
                return None, False
            current = self.from_model(model)
            if not self._holds_claim(current, attempt):
                return current, False
            delivered = current.mark_delivered(now)
            if not await self._guarded_update(session, model, delivered):
                return current, False
        return delivered, True

    async def _fail(
        self,
        envelope_id: str,
        retryable: bool,
        reason: str | None,
        attempt: int | None,
        now: datetime,
    ) -> tuple[NotificationEnvelope | None, bool]:
        async with self._transaction() as session:
            model = await self._load(session, envelope_id)
            if model is None:
                return None, False
            current = self.from_model(model)
            if not self._holds_claim(current, attempt):
                return current, False
            resolved = self._resolve_failure(current, retryable, reason, now)
            if not await self._guarded_update(session, model, resolved):
                return current, False
        return resolved, True

    async def _cancel(self, envelope_id: str, now: datetime) -> bool:
        async with self._transaction() as session:
            model = await self._load(session, envelope_id)
            if model is None or model.status is not EnvelopeStatus.PENDING:
                return False
            cancelled = self.from_model(model).mark_cancelled(now)
            return await self._guarded_update(session, model, cancelled)

    # -- queries ----------------------------------------------------------

    async def get(self, envelope_id: str) -> NotificationEnvelope | None:
        async with self._transaction() as session:
            model = await self._load(session, envelope_id)
            return self.from_model(model) if model is not None else None

    async def list_dead_letters(
        self,
        limit: int = 50,
        offset: int = 0,
    ) -> builtins.list[NotificationEnvelope]:
        stmt = (
            select(NotificationJobModel)
            .where(NotificationJobModel.status == EnvelopeStatus.FAILED_TERMINAL)
            .order_by(NotificationJobModel.updated_at.desc())
            .limit(limit)
            .offset(offset)
        )
        async with self._transaction() as session:
            return [self.from_model(m) for m in (await session.scalars(stmt)).all()]

    async def count_by_status(self) -> builtins.dict[str, int]:
        stmt = select(
            NotificationJobModel.status,
            func.count().label("cnt"),
        ).group_by(NotificationJobModel.status)
        async with self._transaction() as session:
            result = await session.execute(stmt)
            return {row.status.value: row.cnt for row in result.all()}

    async def purge(
        self,
        before: datetime,
        statuses: Iterable[EnvelopeStatus] | None = None,
    ) -> int:
        wanted = set(statuses or TERMINAL_STATUSES) & TERMINAL_STATUSES
        if not wanted:
            return 0
        if before.tzinfo is None:
            before = before.replace(tzinfo=timezone.utc)
        stmt = delete(NotificationJobModel).where(
            NotificationJobModel.status.in_(wanted),
            NotificationJobModel.updated_at < before,
        )
        async with self._transaction() as session:
            result = await session.execute(stmt)
        n: int = int(getattr(result, "rowcount", 0) or 0)
        return n

    async def health_check(self) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError):
            logger.warning("Notification store health check failed", exc_info=True)
            return False
        return True
