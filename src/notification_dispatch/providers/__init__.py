"""Delivery providers shipped with the package."""

from __future__ import annotations

from .base import BaseDeliveryProvider
from .console import ConsoleProvider
from .fake import InMemoryProvider
from .inbox import InAppInboxProvider, InboxMessage

__all__ = [
    "BaseDeliveryProvider",
    "ConsoleProvider",
    "InAppInboxProvider",
    "InMemoryProvider",
    "InboxMessage",
]
