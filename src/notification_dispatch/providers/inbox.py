"""In-app inbox provider — the IN_APP channel's in-process transport."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ..domain.delivery import DeliveryOutcome
from ..domain.envelope import Channel, NotificationEnvelope
from .base import BaseDeliveryProvider

logger = logging.getLogger("notification_dispatch.providers.inbox")


@dataclass
class InboxMessage:
    """One message in a user's in-app inbox."""

    id: str
    title: str
    body: str
    priority: str
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    read: bool = False


class InAppInboxProvider(BaseDeliveryProvider):
    """
    Stores IN_APP notifications per user.

    Delivery is idempotent on envelope id, so a redelivered job after a lease
    expiry does not duplicate the inbox entry.
    """

    channel = Channel.IN_APP

    def __init__(self) -> None:
        self._inboxes: dict[str, dict[str, InboxMessage]] = {}
        self._lock = asyncio.Lock()

    async def deliver(self, envelope: NotificationEnvelope) -> DeliveryOutcome:
        if not envelope.user_id.strip():
            return DeliveryOutcome.terminal("Envelope has no recipient user id")

        async with self._lock:
            inbox = self._inboxes.setdefault(envelope.user_id, {})
            if envelope.id not in inbox:
                inbox[envelope.id] = InboxMessage(
                    id=envelope.id,
                    title=envelope.title,
                    body=envelope.body,
                    priority=envelope.priority.value,
                )
            else:
                logger.debug("Duplicate in-app delivery of %s ignored", envelope.id)
        return DeliveryOutcome.delivered(provider_id=envelope.id)

    def inbox(self, user_id: str, *, unread_only: bool = False) -> list[InboxMessage]:
        """Messages for a user, newest first."""
        messages = sorted(
            self._inboxes.get(user_id, {}).values(),
            key=lambda m: m.received_at,
            reverse=True,
        )
        if unread_only:
            return [m for m in messages if not m.read]
        return messages

    def mark_read(self, user_id: str, message_id: str) -> bool:
        message = self._inboxes.get(user_id, {}).get(message_id)
        if message is None:
            return False
        message.read = True
        return True

    def unread_count(self, user_id: str) -> int:
        return sum(1 for m in self._inboxes.get(user_id, {}).values() if not m.read)
