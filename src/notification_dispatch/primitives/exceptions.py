"""Domain and infrastructure exceptions for notification-dispatch."""

from __future__ import annotations


class NotificationDispatchError(Exception):
    """Root exception for the entire notification-dispatch package."""


class DomainError(NotificationDispatchError):
    """Base class for all domain-related errors."""


class EnvelopeStateError(DomainError):
    """Raised when an envelope lifecycle transition is not allowed.

    E.g. delivering a PENDING envelope, re-enqueueing a terminal one.
    """


class ValidationError(NotificationDispatchError):
    """Raised when an inbound notification request is malformed.

    Carries structured errors: ``{field: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        elif errors is None:
            self.errors = {}
        else:
            self.errors = errors
        super().__init__(str(self.errors))


class ConfigurationError(NotificationDispatchError):
    """Raised when settings or wiring are inconsistent."""


class InfrastructureError(NotificationDispatchError):
    """Base class for all infrastructure-related errors."""


class QueueError(InfrastructureError):
    """Base class for durable queue failures."""


class QueueUnavailableError(QueueError):
    """Raised when the backing store cannot accept or return work."""


# ── Delivery Exceptions ──────────────────────────────────────────────


class DeliveryError(InfrastructureError):
    """Raised by providers when a delivery attempt fails."""

    def __init__(
        self,
        reason: str,
        *,
        channel: str | None = None,
        envelope_id: str | None = None,
    ) -> None:
        self.reason = reason
        self.channel = channel
        self.envelope_id = envelope_id
        prefix = f"[{channel}] " if channel else ""
        super().__init__(f"{prefix}{reason}")


class RetryableDeliveryError(DeliveryError):
    """Transient failure (network, rate limit, timeout); retried with backoff."""


class TerminalDeliveryError(DeliveryError):
    """Permanent failure (invalid recipient, malformed content); dead-lettered."""


# ── Provider Exceptions ──────────────────────────────────────────────


class ProviderError(NotificationDispatchError):
    """Base class for provider registry errors."""


class ProviderNotFoundError(ProviderError):
    """Raised when no provider is registered for a channel.

    The worker treats this as a terminal failure.
    """

    def __init__(self, channel: object) -> None:
        self.channel = channel
        super().__init__(f"No delivery provider registered for channel {channel!s}")


class ProviderRegistrationError(ProviderError):
    """Raised on duplicate registration, registration after freeze,
    or a failed exhaustiveness check."""
