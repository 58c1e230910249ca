"""NotificationEnvelope — the immutable unit of queued work."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..primitives.exceptions import EnvelopeStateError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Channel(str, Enum):
    """Delivery media. Closed: every member needs a registered provider."""

    EMAIL = "EMAIL"
    SMS = "SMS"
    PUSH = "PUSH"
    IN_APP = "IN_APP"


class Priority(str, Enum):
    """Queue ordering tiers. Never used for correctness."""

    URGENT = "URGENT"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        """0 for URGENT up to 3 for LOW; lower ranks dequeue first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK: dict[Priority, int] = {
    Priority.URGENT: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


class EnvelopeStatus(str, Enum):
    """Lifecycle states for a notification envelope."""

    PENDING = "PENDING"
    IN_FLIGHT = "IN_FLIGHT"
    DELIVERED = "DELIVERED"
    FAILED_RETRYABLE = "FAILED_RETRYABLE"
    FAILED_TERMINAL = "FAILED_TERMINAL"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {EnvelopeStatus.DELIVERED, EnvelopeStatus.FAILED_TERMINAL, EnvelopeStatus.CANCELLED}
)


class NotificationEnvelope(BaseModel):
    """Immutable record of one notification delivery request.

    Status transitions::

        PENDING   → IN_FLIGHT        (begin_attempt)
        IN_FLIGHT → DELIVERED        (mark_delivered)
        IN_FLIGHT → PENDING          (schedule_retry, release_lease)
        IN_FLIGHT → FAILED_TERMINAL  (mark_failed_terminal)
        PENDING   → FAILED_TERMINAL  (mark_failed_terminal)
        PENDING   → CANCELLED        (mark_cancelled)

    Every transition returns a new envelope; the receiver is never modified,
    so a provider holding a reference cannot alter queue state.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    channel: Channel
    title: str
    body: str
    priority: Priority = Priority.MEDIUM
    status: EnvelopeStatus = EnvelopeStatus.PENDING
    attempt_count: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=3, ge=1)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_attempt_at: datetime | None = None
    next_visible_at: datetime | None = None
    last_error: str | None = None
    correlation_id: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    # -- queries ----------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def attempts_exhausted(self) -> bool:
        return self.attempt_count >= self.max_attempts

    def to_response(self) -> dict[str, Any]:
        """Outbound shape returned to the presentation layer."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "channel": self.channel.value,
            "title": self.title,
            "message": self.body,
            "priority": self.priority.value,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
        }

    # -- transitions ------------------------------------------------------

    def _require(self, *allowed: EnvelopeStatus, action: str) -> None:
        if self.status not in allowed:
            raise EnvelopeStateError(
                f"Cannot {action} envelope {self.id} in {self.status.value} state"
            )

    def _evolve(self, now: datetime | None = None, **changes: Any) -> NotificationEnvelope:
        changes["updated_at"] = now or utcnow()
        return self.model_copy(update=changes)

    def with_priority(self, priority: Priority) -> NotificationEnvelope:
        """Return a copy carrying another priority (only before first attempt)."""
        self._require(EnvelopeStatus.PENDING, action="reprioritise")
        return self._evolve(priority=priority)

    def with_max_attempts(self, max_attempts: int) -> NotificationEnvelope:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        return self._evolve(max_attempts=max_attempts)

    def begin_attempt(self, now: datetime | None = None) -> NotificationEnvelope:
        """PENDING → IN_FLIGHT, counting the attempt."""
        self._require(EnvelopeStatus.PENDING, action="start")
        now = now or utcnow()
        return self._evolve(
            now,
            status=EnvelopeStatus.IN_FLIGHT,
            attempt_count=self.attempt_count + 1,
            last_attempt_at=now,
            next_visible_at=None,
        )

    def mark_delivered(self, now: datetime | None = None) -> NotificationEnvelope:
        """IN_FLIGHT → DELIVERED."""
        self._require(EnvelopeStatus.IN_FLIGHT, action="deliver")
        return self._evolve(now, status=EnvelopeStatus.DELIVERED, last_error=None)

    def schedule_retry(
        self,
        reason: str | None,
        visible_at: datetime,
        now: datetime | None = None,
    ) -> NotificationEnvelope:
        """IN_FLIGHT → PENDING, hidden until ``visible_at``."""
        self._require(EnvelopeStatus.IN_FLIGHT, action="retry")
        if self.attempts_exhausted:
            raise EnvelopeStateError(
                f"Max attempts ({self.max_attempts}) exhausted for envelope {self.id}"
            )
        return self._evolve(
            now,
            status=EnvelopeStatus.PENDING,
            last_error=reason,
            next_visible_at=visible_at,
        )

    def release_lease(self, now: datetime | None = None) -> NotificationEnvelope:
        """IN_FLIGHT → PENDING after the lease expired without a verdict."""
        self._require(EnvelopeStatus.IN_FLIGHT, action="release")
        now = now or utcnow()
        return self._evolve(
            now,
            status=EnvelopeStatus.PENDING,
            last_error="Lease expired before acknowledgement",
            next_visible_at=now,
        )

    def mark_failed_terminal(
        self, reason: str | None, now: datetime | None = None
    ) -> NotificationEnvelope:
        """IN_FLIGHT | PENDING → FAILED_TERMINAL."""
        self._require(
            EnvelopeStatus.IN_FLIGHT, EnvelopeStatus.PENDING, action="dead-letter"
        )
        return self._evolve(
            now,
            status=EnvelopeStatus.FAILED_TERMINAL,
            last_error=reason,
            next_visible_at=None,
        )

    def mark_cancelled(self, now: datetime | None = None) -> NotificationEnvelope:
        """PENDING → CANCELLED."""
        self._require(EnvelopeStatus.PENDING, action="cancel")
        return self._evolve(
            now,
            status=EnvelopeStatus.CANCELLED,
            last_error="Cancelled before delivery",
            next_visible_at=None,
        )
