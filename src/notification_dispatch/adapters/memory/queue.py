"""InMemoryNotificationQueue — single-process implementation of INotificationQueue."""

from __future__ import annotations

import asyncio
import bisect
import itertools
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ...domain.envelope import (
    TERMINAL_STATUSES,
    EnvelopeStatus,
    NotificationEnvelope,
    Priority,
)
from ...primitives.exceptions import EnvelopeStateError, QueueUnavailableError
from ..base import DEFAULT_LEASE_SECONDS, BaseNotificationQueue

if TYPE_CHECKING:
    import builtins
    from collections.abc import Callable, Iterable

    from ...instrumentation import HookRegistry
    from ...retry import RetryPolicy


@dataclass
class _Entry:
    """Active (PENDING or IN_FLIGHT) envelope with its queue bookkeeping."""

    envelope: NotificationEnvelope
    sequence: int
    lease_expires_at: datetime | None = None


class InMemoryNotificationQueue(BaseNotificationQueue):
    """
    Dict-backed queue for tests and single-process deployments.

    Features:
    - One sequence per priority tier, ordered by enqueue sequence
    - Leases with expiry-based reclaim
    - Dead-letter and delivered archive kept for inspection
    - ``set_available(False)`` simulates a store outage
    """

    def __init__(
        self,
        retry_policy: RetryPolicy | None = None,
        *,
        lease_seconds: float = DEFAULT_LEASE_SECONDS,
        clock: Callable[[], datetime] | None = None,
        hooks: HookRegistry | None = None,
    ) -> None:
        super().__init__(
            retry_policy, lease_seconds=lease_seconds, clock=clock, hooks=hooks
        )
        self._active: dict[str, _Entry] = {}
        self._archive: dict[str, NotificationEnvelope] = {}
        self._tiers: dict[Priority, list[tuple[int, str]]] = {p: [] for p in Priority}
        self._sequence = itertools.count(1)
        self._lock = asyncio.Lock()
        self._available = True

    def _ensure_available(self) -> None:
        if not self._available:
            raise QueueUnavailableError("In-memory queue is marked unavailable")

    def _push(self, entry: _Entry) -> None:
        bisect.insort(
            self._tiers[entry.envelope.priority], (entry.sequence, entry.envelope.id)
        )

    def _remove_from_tier(self, entry: _Entry) -> None:
        tier = self._tiers[entry.envelope.priority]
        key = (entry.sequence, entry.envelope.id)
        index = bisect.bisect_left(tier, key)
        if index < len(tier) and tier[index] == key:
            del tier[index]

    def _retire(self, envelope: NotificationEnvelope) -> None:
        self._active.pop(envelope.id, None)
        self._archive[envelope.id] = envelope

    # -- storage primitives -----------------------------------------------

    async def _enqueue(
        self, envelope: NotificationEnvelope, now: datetime
    ) -> NotificationEnvelope:
        async with self._lock:
            self._ensure_available()
            if envelope.id in self._active or envelope.id in self._archive:
                raise EnvelopeStateError(f"Envelope {envelope.id} is already queued")
            entry = _Entry(envelope=envelope, sequence=next(self._sequence))
            self._active[envelope.id] = entry
            self._push(entry)
            return envelope

    async def _dequeue(
        self, now: datetime
    ) -> tuple[NotificationEnvelope | None, list[NotificationEnvelope]]:
        async with self._lock:
            self._ensure_available()
            reclaimed = self._reclaim_expired(now)
            for priority in sorted(Priority, key=lambda p: p.rank):
                for sequence, envelope_id in self._tiers[priority]:
                    entry = self._active[envelope_id]
                    visible_at = entry.envelope.next_visible_at
                    if visible_at is not None and visible_at > now:
                        continue
                    self._remove_from_tier(entry)
                    entry.envelope = entry.envelope.begin_attempt(now)
                    entry.lease_expires_at = self._lease_deadline(now)
                    return entry.envelope, reclaimed
            return None, reclaimed

    def _reclaim_expired(self, now: datetime) -> list[NotificationEnvelope]:
        expired = [
            entry
            for entry in self._active.values()
            if entry.envelope.status is EnvelopeStatus.IN_FLIGHT
            and entry.lease_expires_at is not None
            and entry.lease_expires_at <= now
        ]
        reclaimed: list[NotificationEnvelope] = []
        for entry in expired:
            resolved = self._resolve_expired_lease(entry.envelope, now)
            entry.lease_expires_at = None
            if resolved.is_terminal:
                self._retire(resolved)
            else:
                entry.envelope = resolved
                self._push(entry)
            reclaimed.append(resolved)
        return reclaimed

    async def _acknowledge(
        self, envelope_id: str, attempt: int | None, now: datetime
    ) -> tuple[NotificationEnvelope | None, bool]:
        async with self._lock:
            self._ensure_available()
            entry = self._active.get(envelope_id)
            if entry is None:
                return self._archive.get(envelope_id), False
            if not self._holds_claim(entry.envelope, attempt):
                return entry.envelope, False
            delivered = entry.envelope.mark_delivered(now)
            self._retire(delivered)
            return delivered, True

    async def _fail(
        self,
        envelope_id: str,
        retryable: bool,
        reason: str | None,
        attempt: int | None,
        now: datetime,
    ) -> tuple[NotificationEnvelope | None, bool]:
        async with self._lock:
            self._ensure_available()
            entry = self._active.get(envelope_id)
            if entry is None:
                return self._archive.get(envelope_id), False
            if not self._holds_claim(entry.envelope, attempt):
                return entry.envelope, False
            resolved = self._resolve_failure(entry.envelope, retryable, reason, now)
            entry.lease_expires_at = None
            if resolved.is_terminal:
                self._retire(resolved)
            else:
                entry.envelope = resolved
                self._push(entry)
            return resolved, True

    async def _cancel(self, envelope_id: str, now: datetime) -> bool:
        async with self._lock:
            self._ensure_available()
            entry = self._active.get(envelope_id)
            if entry is None or entry.envelope.status is not EnvelopeStatus.PENDING:
                return False
            self._remove_from_tier(entry)
            self._retire(entry.envelope.mark_cancelled(now))
            return True

    # -- queries ----------------------------------------------------------

    async def get(self, envelope_id: str) -> NotificationEnvelope | None:
        self._ensure_available()
        entry = self._active.get(envelope_id)
        if entry is not None:
            return entry.envelope
        return self._archive.get(envelope_id)

    async def list_dead_letters(
        self,
        limit: int = 50,
        offset: int = 0,
    ) -> builtins.list[NotificationEnvelope]:
        self._ensure_available()
        dead = sorted(
            (
                e
                for e in self._archive.values()
                if e.status is EnvelopeStatus.FAILED_TERMINAL
            ),
            key=lambda e: e.updated_at,
            reverse=True,
        )
        return dead[offset : offset + limit]

    async def count_by_status(self) -> builtins.dict[str, int]:
        self._ensure_available()
        counts: dict[str, int] = {}
        envelopes = itertools.chain(
            (entry.envelope for entry in self._active.values()),
            self._archive.values(),
        )
        for envelope in envelopes:
            key = envelope.status.value
            counts[key] = counts.get(key, 0) + 1
        return counts

    async def purge(
        self,
        before: datetime,
        statuses: Iterable[EnvelopeStatus] | None = None,
    ) -> int:
        self._ensure_available()
        if before.tzinfo is None:
            before = before.replace(tzinfo=timezone.utc)
        wanted = set(statuses or TERMINAL_STATUSES) & TERMINAL_STATUSES
        async with self._lock:
            to_delete = [
                envelope_id
                for envelope_id, envelope in self._archive.items()
                if envelope.status in wanted and envelope.updated_at < before
            ]
            for envelope_id in to_delete:
                del self._archive[envelope_id]
        return len(to_delete)

    async def health_check(self) -> bool:
        return self._available

    # ── Test helpers ─────────────────────────────────────────────

    def set_available(self, available: bool) -> None:
        self._available = available

    def lease_expires_at(self, envelope_id: str) -> datetime | None:
        entry = self._active.get(envelope_id)
        return entry.lease_expires_at if entry else None

    @property
    def active_count(self) -> int:
        return len(self._active)

    def clear(self) -> None:
        self._active.clear()
        self._archive.clear()
        for tier in self._tiers.values():
            tier.clear()
