"""Console provider for development debugging."""

from __future__ import annotations

import logging

from ..domain.delivery import DeliveryOutcome
from ..domain.envelope import Channel, NotificationEnvelope
from .base import BaseDeliveryProvider

logger = logging.getLogger("notification_dispatch.providers.console")


class ConsoleProvider(BaseDeliveryProvider):
    """
    Development adapter that prints notifications to the console.

    Registered for EMAIL, SMS and PUSH by default in development wiring, where
    no real transport is configured.
    """

    def __init__(self, channel: Channel, output_to_stdout: bool = True) -> None:
        self.channel = channel
        self.output_to_stdout = output_to_stdout

    async def deliver(self, envelope: NotificationEnvelope) -> DeliveryOutcome:
        output = [
            "═" * 50,
            f"NOTIFICATION SENT VIA {self.channel.value}",
            f"To:       {envelope.user_id}",
            f"Priority: {envelope.priority.value}",
            f"Title:    {envelope.title or '(No Title)'}",
            f"Body:     {envelope.body}",
            f"Attempt:  {envelope.attempt_count}/{envelope.max_attempts}",
            "═" * 50,
        ]

        full_output = "\n".join(output)
        logger.info(full_output)

        if self.output_to_stdout:
            print(full_output)

        return DeliveryOutcome.delivered(provider_id=f"console-{envelope.id}")
