"""Shared fixtures for notification-dispatch tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from notification_dispatch.adapters.memory import InMemoryNotificationQueue
from notification_dispatch.domain import Channel, NotificationEnvelope, Priority
from notification_dispatch.instrumentation import HookRegistry, set_hook_registry
from notification_dispatch.retry import RetryPolicy

START = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class RecordingHook:
    """Instrumentation hook that records operations and their outcome."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any], str]] = []

    async def __call__(self, operation: str, attributes: dict[str, Any], next_handler: Any) -> Any:
        try:
            result = await next_handler()
        except Exception:
            self.calls.append((operation, dict(attributes), "error"))
            raise
        self.calls.append((operation, dict(attributes), "success"))
        return result

    def operations(self) -> list[str]:
        return [op for op, _, _ in self.calls]


def make_envelope(**overrides: Any) -> NotificationEnvelope:
    data: dict[str, Any] = {
        "user_id": "user-1",
        "channel": Channel.EMAIL,
        "title": "Welcome",
        "body": "Hello there",
        "priority": Priority.MEDIUM,
    }
    data.update(overrides)
    return NotificationEnvelope(**data)


@pytest.fixture(autouse=True)
def hook_registry() -> HookRegistry:
    """Fresh instrumentation registry per test."""
    registry = HookRegistry()
    set_hook_registry(registry)
    return registry


@pytest.fixture
def recording_hook(hook_registry: HookRegistry) -> RecordingHook:
    hook = RecordingHook()
    hook_registry.register(hook)
    return hook


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=60.0)


@pytest.fixture
def queue(retry_policy: RetryPolicy, clock: FakeClock) -> InMemoryNotificationQueue:
    return InMemoryNotificationQueue(retry_policy, lease_seconds=150.0, clock=clock)
