"""In-memory adapters for testing and single-process use."""

from __future__ import annotations

from .queue import InMemoryNotificationQueue

__all__ = ["InMemoryNotificationQueue"]
