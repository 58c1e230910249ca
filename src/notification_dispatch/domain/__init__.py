"""Domain model: envelope, delivery outcome, inbound request."""

from __future__ import annotations

from .delivery import DeliveryOutcome, OutcomeKind
from .envelope import (
    TERMINAL_STATUSES,
    Channel,
    EnvelopeStatus,
    NotificationEnvelope,
    Priority,
    utcnow,
)
from .request import NotificationRequest

__all__ = [
    "Channel",
    "DeliveryOutcome",
    "EnvelopeStatus",
    "NotificationEnvelope",
    "NotificationRequest",
    "OutcomeKind",
    "Priority",
    "TERMINAL_STATUSES",
    "utcnow",
]
