"""BaseNotificationQueue — instrumentation and failure policy shared by adapters."""

from __future__ import annotations

import abc
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, cast

from ..correlation import get_correlation_id
from ..domain.envelope import EnvelopeStatus, NotificationEnvelope, Priority, utcnow
from ..instrumentation import HookRegistry, get_hook_registry
from ..ports.queue import INotificationQueue
from ..primitives.exceptions import EnvelopeStateError
from ..retry import RetryPolicy

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger("notification_dispatch.queue")

DEFAULT_LEASE_SECONDS = 150.0

# (resulting envelope, whether the call changed state)
_Transition = tuple[NotificationEnvelope | None, bool]


class BaseNotificationQueue(INotificationQueue, abc.ABC):
    """Template for queue adapters.

    Public operations run through the instrumentation hook registry and apply
    the retry/dead-letter policy; subclasses implement the atomic storage
    primitives (``_enqueue``, ``_dequeue``, ``_acknowledge``, ``_fail``,
    ``_cancel``), each of which must execute as a single critical section or
    transaction.

    ``hooks`` defaults to the registry bound to the constructing context and
    is kept for the queue's lifetime, so events raised from worker tasks
    reach the same hooks.
    """

    def __init__(
        self,
        retry_policy: RetryPolicy | None = None,
        *,
        lease_seconds: float = DEFAULT_LEASE_SECONDS,
        clock: Callable[[], datetime] | None = None,
        hooks: HookRegistry | None = None,
    ) -> None:
        if lease_seconds <= 0:
            raise ValueError("lease_seconds must be > 0")
        self.retry_policy = retry_policy or RetryPolicy()
        self.lease_seconds = lease_seconds
        self._clock = clock or utcnow
        self.hooks = hooks if hooks is not None else get_hook_registry()

    def _now(self) -> datetime:
        return self._clock()

    def _lease_deadline(self, now: datetime) -> datetime:
        return now + timedelta(seconds=self.lease_seconds)

    @staticmethod
    def _holds_claim(envelope: NotificationEnvelope, attempt: int | None) -> bool:
        """A verdict is only accepted from the claim that is currently IN_FLIGHT."""
        return envelope.status is EnvelopeStatus.IN_FLIGHT and (
            attempt is None or envelope.attempt_count == attempt
        )

    # -- policy -----------------------------------------------------------

    def _resolve_failure(
        self,
        envelope: NotificationEnvelope,
        retryable: bool,
        reason: str | None,
        now: datetime,
    ) -> NotificationEnvelope:
        """Retry with backoff while attempts remain; dead-letter otherwise."""
        if retryable and not envelope.attempts_exhausted:
            visible_at = self.retry_policy.next_visible_at(envelope.attempt_count, now)
            return envelope.schedule_retry(reason, visible_at, now)
        if retryable:
            reason = (
                f"{reason or 'Retryable failure'} "
                f"(max attempts {envelope.max_attempts} exhausted)"
            )
        return envelope.mark_failed_terminal(reason or "Terminal failure", now)

    def _resolve_expired_lease(
        self, envelope: NotificationEnvelope, now: datetime
    ) -> NotificationEnvelope:
        """An abandoned IN_FLIGHT job counts as a retryable failure, visible now."""
        if envelope.attempts_exhausted:
            return envelope.mark_failed_terminal(
                f"Lease expired (max attempts {envelope.max_attempts} exhausted)", now
            )
        return envelope.release_lease(now)

    # -- commands ---------------------------------------------------------

    async def enqueue(
        self,
        envelope: NotificationEnvelope,
        priority: Priority | None = None,
    ) -> NotificationEnvelope:
        if envelope.status is not EnvelopeStatus.PENDING:
            raise EnvelopeStateError(
                f"Cannot enqueue envelope {envelope.id} in {envelope.status.value} state"
            )
        if priority is not None and priority is not envelope.priority:
            envelope = envelope.with_priority(priority)
        if envelope.max_attempts != self.retry_policy.max_attempts:
            envelope = envelope.with_max_attempts(self.retry_policy.max_attempts)

        attributes = self._attributes(envelope)
        stored = cast(
            "NotificationEnvelope",
            await self.hooks.execute_all(
                f"queue.enqueue.{envelope.priority.value}",
                attributes,
                lambda: self._enqueue(envelope, self._now()),
            ),
        )
        logger.info(
            "Enqueued notification %s (channel=%s, priority=%s)",
            stored.id,
            stored.channel.value,
            stored.priority.value,
        )
        return stored

    async def dequeue(self) -> NotificationEnvelope | None:
        claimed, reclaimed = cast(
            "tuple[NotificationEnvelope | None, list[NotificationEnvelope]]",
            await self.hooks.execute_all(
                "queue.dequeue",
                {"correlation_id": get_correlation_id()},
                lambda: self._dequeue(self._now()),
            ),
        )
        for envelope in reclaimed:
            await self._report_reclaimed(envelope)
        if claimed is not None:
            logger.debug(
                "Dequeued notification %s (attempt %d/%d)",
                claimed.id,
                claimed.attempt_count,
                claimed.max_attempts,
            )
        return claimed

    async def acknowledge(
        self, envelope_id: str, *, attempt: int | None = None
    ) -> NotificationEnvelope | None:
        envelope, changed = cast(
            "_Transition",
            await self.hooks.execute_all(
                "queue.acknowledge",
                {"envelope.id": envelope_id, "envelope.attempt": attempt},
                lambda: self._acknowledge(envelope_id, attempt, self._now()),
            ),
        )
        if changed:
            logger.info("Notification %s delivered", envelope_id)
        else:
            logger.debug("Acknowledge of %s was a no-op", envelope_id)
        return envelope

    async def fail(
        self,
        envelope_id: str,
        retryable: bool,
        reason: str | None = None,
        *,
        attempt: int | None = None,
    ) -> NotificationEnvelope | None:
        envelope, changed = cast(
            "_Transition",
            await self.hooks.execute_all(
                "queue.fail",
                {
                    "envelope.id": envelope_id,
                    "envelope.attempt": attempt,
                    "failure.retryable": retryable,
                    "failure.reason": reason,
                },
                lambda: self._fail(
                    envelope_id, retryable, reason, attempt, self._now()
                ),
            ),
        )
        if not changed:
            logger.warning(
                "Ignored failure report for %s (attempt %s): not the live claim"
                " (status=%s, current attempt=%s)",
                envelope_id,
                attempt if attempt is not None else "-",
                envelope.status.value if envelope else "unknown",
                envelope.attempt_count if envelope else "-",
            )
            return envelope
        assert envelope is not None
        if envelope.status is EnvelopeStatus.FAILED_TERMINAL:
            await self._report_dead_letter(envelope)
        else:
            logger.info(
                "Notification %s scheduled for retry at %s (attempt %d/%d): %s",
                envelope.id,
                envelope.next_visible_at.isoformat() if envelope.next_visible_at else "-",
                envelope.attempt_count,
                envelope.max_attempts,
                reason,
            )
        return envelope

    async def cancel(self, envelope_id: str) -> bool:
        cancelled = await self._cancel(envelope_id, self._now())
        if cancelled:
            logger.info("Notification %s cancelled", envelope_id)
        return cancelled

    # -- reporting --------------------------------------------------------

    def _attributes(self, envelope: NotificationEnvelope) -> dict[str, Any]:
        return {
            "envelope.id": envelope.id,
            "envelope.channel": envelope.channel.value,
            "envelope.priority": envelope.priority.value,
            "envelope.attempt": envelope.attempt_count,
            "correlation_id": envelope.correlation_id or get_correlation_id(),
        }

    async def _report_dead_letter(self, envelope: NotificationEnvelope) -> None:
        logger.warning(
            "Notification %s dead-lettered after %d attempt(s): %s",
            envelope.id,
            envelope.attempt_count,
            envelope.last_error,
        )
        attributes = self._attributes(envelope)
        attributes["failure.reason"] = envelope.last_error
        await self.hooks.emit("queue.dead_letter", attributes)

    async def _report_reclaimed(self, envelope: NotificationEnvelope) -> None:
        logger.warning(
            "Lease expired for notification %s after attempt %d",
            envelope.id,
            envelope.attempt_count,
        )
        await self.hooks.emit("queue.lease_expired", self._attributes(envelope))
        if envelope.status is EnvelopeStatus.FAILED_TERMINAL:
            await self._report_dead_letter(envelope)

    # -- storage primitives -----------------------------------------------

    @abc.abstractmethod
    async def _enqueue(
        self, envelope: NotificationEnvelope, now: datetime
    ) -> NotificationEnvelope: ...

    @abc.abstractmethod
    async def _dequeue(
        self, now: datetime
    ) -> tuple[NotificationEnvelope | None, list[NotificationEnvelope]]:
        """Reclaim expired leases, then claim one envelope.

        Returns ``(claimed, reclaimed)``.
        """

    @abc.abstractmethod
    async def _acknowledge(
        self, envelope_id: str, attempt: int | None, now: datetime
    ) -> _Transition: ...

    @abc.abstractmethod
    async def _fail(
        self,
        envelope_id: str,
        retryable: bool,
        reason: str | None,
        attempt: int | None,
        now: datetime,
    ) -> _Transition: ...

    @abc.abstractmethod
    async def _cancel(self, envelope_id: str, now: datetime) -> bool: ...
