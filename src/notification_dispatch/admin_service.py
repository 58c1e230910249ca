"""DeadLetterAdminService — inspection and cleanup of the notification queue."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .domain.envelope import EnvelopeStatus, NotificationEnvelope
    from .ports.queue import INotificationQueue

logger = logging.getLogger("notification_dispatch.admin")


@dataclass(frozen=True)
class QueueStatistics:
    """Snapshot of envelope counts, suitable for dashboards and health checks.

    Attributes:
        counts: Mapping of ``EnvelopeStatus`` value → envelope count.
            Statuses with zero envelopes are omitted.
        total: Sum of all counts across all statuses.
    """

    counts: dict[str, int] = field(default_factory=dict)
    total: int = 0

    def get(self, status: EnvelopeStatus | str) -> int:
        key = status if isinstance(status, str) else status.value
        return self.counts.get(key, 0)


class DeadLetterAdminService:
    """Administrative operations over the queue.

    Intentionally separate from ``NotificationDispatchService``, which owns
    the operational path (send, cancel).

    Example::

        admin = DeadLetterAdminService(queue)

        stats = await admin.get_statistics()
        print(stats.counts)  # {"PENDING": 12, "FAILED_TERMINAL": 3, ...}

        failed = await admin.list_dead_letters(limit=20)

        cutoff = datetime(2025, 1, 1, tzinfo=timezone.utc)
        deleted = await admin.purge_terminal(before=cutoff)
    """

    def __init__(self, queue: INotificationQueue) -> None:
        self._queue = queue

    async def list_dead_letters(
        self,
        limit: int = 50,
        offset: int = 0,
    ) -> list[NotificationEnvelope]:
        """Return FAILED_TERMINAL envelopes, most recently failed first."""
        if limit < 1 or offset < 0:
            raise ValueError("limit must be >= 1 and offset >= 0")
        return await self._queue.list_dead_letters(limit=limit, offset=offset)

    async def get_statistics(self) -> QueueStatistics:
        """Return aggregated counts per status."""
        counts = await self._queue.count_by_status()
        return QueueStatistics(counts=counts, total=sum(counts.values()))

    async def purge_terminal(
        self,
        before: datetime | None = None,
        statuses: Iterable[EnvelopeStatus] | None = None,
    ) -> int:
        """Delete terminal envelopes updated before ``before``.

        Args:
            before: UTC cutoff datetime. Defaults to now (purges all terminal
                envelopes).
            statuses: Restrict to these terminal statuses. Defaults to
                DELIVERED, FAILED_TERMINAL and CANCELLED.

        Returns:
            Number of envelopes deleted.
        """
        threshold = before if before is not None else datetime.now(timezone.utc)
        if threshold.tzinfo is None:
            threshold = threshold.replace(tzinfo=timezone.utc)
        deleted = await self._queue.purge(threshold, statuses)
        if deleted:
            logger.info(
                "purge_terminal: deleted %d terminal envelopes (before=%s)",
                deleted,
                threshold.isoformat(),
            )
        return deleted
