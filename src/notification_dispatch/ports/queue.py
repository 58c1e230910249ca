"""INotificationQueue — port for the durable, at-least-once job store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    import builtins
    from collections.abc import Iterable
    from datetime import datetime

    from ..domain.envelope import EnvelopeStatus, NotificationEnvelope, Priority


@runtime_checkable
class INotificationQueue(Protocol):
    """Ordered, persistent job store with priorities, leases and dead-letters.

    Every method is atomic with respect to every other one; the queue is the
    only point of mutual exclusion between workers.

    Ordering: ``URGENT`` before ``HIGH`` before ``MEDIUM`` before ``LOW``;
    FIFO by enqueue order inside a tier. Lower tiers may starve under
    sustained higher-tier load; no weighted fairness is attempted.

    Implementations: ``InMemoryNotificationQueue``,
    ``SQLAlchemyNotificationQueue``.
    """

    async def enqueue(
        self,
        envelope: NotificationEnvelope,
        priority: Priority | None = None,
    ) -> NotificationEnvelope:
        """Append the envelope at the tail of its priority tier.

        Args:
            envelope: A PENDING envelope that has never been enqueued.
            priority: Overrides ``envelope.priority`` when given.

        Returns:
            The stored envelope (``max_attempts`` stamped from the retry policy).

        Raises:
            EnvelopeStateError: The envelope is terminal or already queued.
            QueueUnavailableError: The store cannot accept writes.
        """
        ...

    async def dequeue(self) -> NotificationEnvelope | None:
        """Claim the next visible envelope, or return None.

        The claimed envelope is IN_FLIGHT with ``attempt_count`` incremented
        and hidden from other workers for the lease window. Expired leases are
        reclaimed first.
        """
        ...

    async def acknowledge(
        self, envelope_id: str, *, attempt: int | None = None
    ) -> NotificationEnvelope | None:
        """Mark DELIVERED and remove from active storage.

        Idempotent: repeating the call (or an unknown id) is a no-op. When
        ``attempt`` is given it must equal the envelope's current
        ``attempt_count``; a verdict from an earlier, expired claim is ignored.
        """
        ...

    async def fail(
        self,
        envelope_id: str,
        retryable: bool,
        reason: str | None = None,
        *,
        attempt: int | None = None,
    ) -> NotificationEnvelope | None:
        """Record a failed attempt.

        Retryable failures with attempts left go back to PENDING, invisible
        until the backoff elapses. Everything else moves to the dead-letter
        area as FAILED_TERMINAL. ``attempt`` is checked as in
        :meth:`acknowledge`.
        """
        ...

    async def cancel(self, envelope_id: str) -> bool:
        """Best-effort removal of a PENDING envelope. May race with dequeue."""
        ...

    async def get(self, envelope_id: str) -> NotificationEnvelope | None:
        """Look an envelope up in active, delivered or dead-letter storage."""
        ...

    async def list_dead_letters(
        self,
        limit: int = 50,
        offset: int = 0,
    ) -> builtins.list[NotificationEnvelope]:
        """FAILED_TERMINAL envelopes, most recently updated first."""
        ...

    async def count_by_status(self) -> builtins.dict[str, int]:
        """Mapping of status value → count; zero counts are omitted."""
        ...

    async def purge(
        self,
        before: datetime,
        statuses: Iterable[EnvelopeStatus] | None = None,
    ) -> int:
        """Delete terminal envelopes last updated before ``before``.

        Non-terminal statuses are ignored even when requested.
        """
        ...

    async def health_check(self) -> bool:
        """Return True if the backing store is reachable."""
        ...
