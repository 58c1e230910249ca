"""Delivery outcome reported by providers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class OutcomeKind(Enum):
    """Delivery verdicts a provider can return."""

    DELIVERED = "delivered"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class DeliveryOutcome:
    """Immutable result of a single ``deliver`` call."""

    kind: OutcomeKind
    reason: str | None = None
    provider_id: str | None = None
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_success(self) -> bool:
        return self.kind is OutcomeKind.DELIVERED

    @property
    def is_retryable(self) -> bool:
        return self.kind is OutcomeKind.RETRYABLE

    @classmethod
    def delivered(cls, provider_id: str | None = None) -> DeliveryOutcome:
        """Create a successful delivery outcome."""
        return cls(kind=OutcomeKind.DELIVERED, provider_id=provider_id)

    @classmethod
    def retryable(cls, reason: str) -> DeliveryOutcome:
        """Create a transient failure outcome (network, rate limit, timeout)."""
        return cls(kind=OutcomeKind.RETRYABLE, reason=reason)

    @classmethod
    def terminal(cls, reason: str) -> DeliveryOutcome:
        """Create a permanent failure outcome (invalid recipient, bad content)."""
        return cls(kind=OutcomeKind.TERMINAL, reason=reason)
