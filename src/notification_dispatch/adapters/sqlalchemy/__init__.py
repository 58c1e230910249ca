"""SQLAlchemy-backed notification queue."""

from __future__ import annotations

from .models import Base, NotificationJobModel, create_schema
from .queue import SQLAlchemyNotificationQueue

__all__ = [
    "Base",
    "NotificationJobModel",
    "SQLAlchemyNotificationQueue",
    "create_schema",
]
