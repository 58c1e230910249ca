"""Shared error classification for channel providers."""

from __future__ import annotations

import abc
import asyncio
from typing import TYPE_CHECKING

from ..ports.provider import IDeliveryProvider
from ..primitives.exceptions import RetryableDeliveryError, TerminalDeliveryError

if TYPE_CHECKING:
    from ..domain.delivery import DeliveryOutcome
    from ..domain.envelope import Channel, NotificationEnvelope

_RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    RetryableDeliveryError,
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
    OSError,
)
_TERMINAL_ERRORS: tuple[type[BaseException], ...] = (
    TerminalDeliveryError,
    ValueError,
    TypeError,
)


class BaseDeliveryProvider(IDeliveryProvider, abc.ABC):
    """
    Base class for channel providers.

    Subclasses set ``channel`` and implement :meth:`deliver`. Exceptions
    escaping ``deliver`` are classified by :meth:`is_retryable`:
    transport-level errors retry, content errors dead-letter, and anything
    unrecognised retries until ``max_attempts`` runs out.
    """

    channel: Channel

    @abc.abstractmethod
    async def deliver(self, envelope: NotificationEnvelope) -> DeliveryOutcome: ...

    def is_retryable(self, error: BaseException) -> bool:
        if isinstance(error, _RETRYABLE_ERRORS):
            return True
        return not isinstance(error, _TERMINAL_ERRORS)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(channel={self.channel.value})"
