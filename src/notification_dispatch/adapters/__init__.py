"""Queue adapters.

The SQLAlchemy adapter lives in ``notification_dispatch.adapters.sqlalchemy``
and is imported explicitly so in-memory deployments never load SQLAlchemy.
"""

from __future__ import annotations

from .base import DEFAULT_LEASE_SECONDS, BaseNotificationQueue
from .memory import InMemoryNotificationQueue

__all__ = [
    "BaseNotificationQueue",
    "DEFAULT_LEASE_SECONDS",
    "InMemoryNotificationQueue",
]
