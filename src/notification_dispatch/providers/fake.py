"""In-memory provider for test assertions."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import TYPE_CHECKING

from ..domain.delivery import DeliveryOutcome
from .base import BaseDeliveryProvider

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ..domain.envelope import Channel, NotificationEnvelope

logger = logging.getLogger("notification_dispatch.providers.fake")


class InMemoryProvider(BaseDeliveryProvider):
    """
    Test double (Fake) that records delivered envelopes.

    Outcomes can be scripted: each ``deliver`` call pops the next entry from
    the script, which is either a ``DeliveryOutcome`` to return or an
    exception to raise. When the script is empty the call succeeds.
    """

    def __init__(
        self,
        channel: Channel,
        *,
        outcomes: Iterable[DeliveryOutcome | BaseException] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.channel = channel
        self.delay = delay
        self.attempts: list[NotificationEnvelope] = []
        self.delivered: list[NotificationEnvelope] = []
        self._script: deque[DeliveryOutcome | BaseException] = deque(outcomes or ())

    def script(self, *outcomes: DeliveryOutcome | BaseException) -> None:
        """Append outcomes to the script."""
        self._script.extend(outcomes)

    async def deliver(self, envelope: NotificationEnvelope) -> DeliveryOutcome:
        self.attempts.append(envelope)
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self._script.popleft() if self._script else DeliveryOutcome.delivered(
            provider_id=f"test-{envelope.id}"
        )
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome.is_success:
            self.delivered.append(envelope)
        return outcome

    def assert_delivered(self, user_id: str, count: int = 1) -> None:
        """Helper for test assertions."""
        matches = [e for e in self.delivered if e.user_id == user_id]
        if len(matches) != count:
            raise AssertionError(
                f"Expected {count} deliveries to {user_id} via {self.channel.value}, "
                f"but found {len(matches)}."
            )

    def clear(self) -> None:
        """Clear recorded attempts, deliveries and any remaining script."""
        self.attempts.clear()
        self.delivered.clear()
        self._script.clear()
