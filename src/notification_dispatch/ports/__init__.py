"""Port definitions for the dispatch pipeline."""

from __future__ import annotations

from .background_worker import IBackgroundWorker
from .provider import IDeliveryProvider
from .queue import INotificationQueue

__all__ = [
    "IBackgroundWorker",
    "IDeliveryProvider",
    "INotificationQueue",
]
