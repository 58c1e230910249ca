"""Delivery provider port."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..domain.delivery import DeliveryOutcome
    from ..domain.envelope import Channel, NotificationEnvelope


@runtime_checkable
class IDeliveryProvider(Protocol):
    """
    Channel-specific transport. One implementation per channel.

    Providers own all external I/O, must apply their own timeouts shorter than
    the worker's per-attempt timeout, and should tolerate duplicate sends:
    delivery is at-least-once.

    Adapters must explicitly declare: class SmsProvider(IDeliveryProvider):
    """

    channel: Channel

    async def deliver(self, envelope: NotificationEnvelope) -> DeliveryOutcome:
        """Attempt delivery and report the verdict."""
        ...

    def is_retryable(self, error: BaseException) -> bool:
        """Classify an exception raised by :meth:`deliver`."""
        ...
