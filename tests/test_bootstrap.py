"""Tests for application wiring."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from notification_dispatch.adapters.memory import InMemoryNotificationQueue
from notification_dispatch.bootstrap import (
    NotificationDispatchApp,
    build_queue,
    default_providers,
)
from notification_dispatch.config import DispatchSettings
from notification_dispatch.domain import Channel, EnvelopeStatus, NotificationEnvelope
from notification_dispatch.instrumentation import HookRegistry, get_hook_registry
from notification_dispatch.ports import INotificationQueue
from notification_dispatch.primitives.exceptions import (
    ConfigurationError,
    ProviderRegistrationError,
)
from notification_dispatch.providers import InMemoryProvider

from .conftest import RecordingHook


async def _wait_delivered(
    queue: INotificationQueue, envelope: NotificationEnvelope, timeout: float = 3.0
) -> NotificationEnvelope:
    deadline = asyncio.get_running_loop().time() + timeout
    while True:
        stored = await queue.get(envelope.id)
        if stored is not None and stored.status is EnvelopeStatus.DELIVERED:
            return stored
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError(f"{envelope.id} not delivered: {stored}")
        await asyncio.sleep(0.01)


class TestBuildQueue:
    def test_memory_backend(self) -> None:
        queue = build_queue(DispatchSettings(delivery_timeout=4))

        assert isinstance(queue, InMemoryNotificationQueue)
        assert queue.lease_seconds == 20.0

    def test_sqlalchemy_backend_needs_session_factory(self) -> None:
        settings = DispatchSettings(
            queue_backend="sqlalchemy", database_url="sqlite+aiosqlite://"
        )

        with pytest.raises(ConfigurationError):
            build_queue(settings)

    def test_default_providers_cover_every_channel(self) -> None:
        assert {p.channel for p in default_providers()} == set(Channel)


class TestNotificationDispatchApp:
    def test_missing_providers_fail_fast(self) -> None:
        with pytest.raises(ProviderRegistrationError):
            NotificationDispatchApp(providers=[InMemoryProvider(Channel.EMAIL)])

    @pytest.mark.asyncio
    async def test_memory_app_delivers(self) -> None:
        providers = [InMemoryProvider(channel) for channel in Channel]
        settings = DispatchSettings(
            worker_concurrency=2, poll_interval=0.05, drain_timeout=1.0
        )

        async with NotificationDispatchApp(settings, providers=providers) as app:
            assert app.started
            envelope = await app.service.send(
                userId="u-1", channel="PUSH", title="Hi", message="There"
            )
            await _wait_delivered(app.queue, envelope)
            health = await app.health_status()

        assert not app.started
        assert not app.pool.is_running
        providers[2].assert_delivered("u-1")
        assert health["status"] == "healthy"
        assert health["components"]["queue"] == "up"

    @pytest.mark.asyncio
    async def test_sqlalchemy_app_creates_schema_and_delivers(
        self, tmp_path: Path
    ) -> None:
        settings = DispatchSettings(
            queue_backend="sqlalchemy",
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'app.db'}",
            worker_concurrency=1,
            poll_interval=0.05,
            drain_timeout=1.0,
        )
        app = NotificationDispatchApp(
            settings, providers=[InMemoryProvider(c) for c in Channel]
        )

        await app.start()
        try:
            envelope = await app.service.send(
                userId="u-2", channel="EMAIL", title="Hi", message="There"
            )
            stored = await _wait_delivered(app.queue, envelope)
            stats = await app.admin.get_statistics()
        finally:
            await app.stop()

        assert stored.attempt_count == 1
        assert stats.get(EnvelopeStatus.DELIVERED) == 1

    def test_defaults_to_the_context_hook_registry(
        self, hook_registry: HookRegistry
    ) -> None:
        app = NotificationDispatchApp(
            providers=[InMemoryProvider(c) for c in Channel]
        )

        assert app.hooks is hook_registry
        assert app.hooks is get_hook_registry()

    @pytest.mark.asyncio
    async def test_hooks_registered_after_start_see_worker_events(self) -> None:
        hooks = HookRegistry()
        settings = DispatchSettings(poll_interval=0.05, drain_timeout=1.0)
        app = NotificationDispatchApp(
            settings, providers=[InMemoryProvider(c) for c in Channel], hooks=hooks
        )

        await app.start()
        recording = RecordingHook()
        hooks.register(recording)
        try:
            envelope = await app.service.send(
                userId="u-4", channel="EMAIL", title="Hi", message="There"
            )
            await _wait_delivered(app.queue, envelope)
        finally:
            await app.stop()

        operations = recording.operations()
        assert "dispatch.send.EMAIL" in operations
        assert "queue.dequeue" in operations
        assert "delivery.attempt.EMAIL" in operations
        assert "queue.acknowledge" in operations
        assert get_hook_registry().registrations == []

    @pytest.mark.asyncio
    async def test_dead_letter_threshold_is_reported(self) -> None:
        app = NotificationDispatchApp(
            DispatchSettings(dead_letter_alert_threshold=0),
            providers=[InMemoryProvider(c) for c in Channel],
        )
        envelope = await app.service.send(
            userId="u-3", channel="SMS", title="Hi", message="There"
        )
        await app.queue.dequeue()
        await app.queue.fail(envelope.id, retryable=False, reason="invalid number")

        report = await app.health_status()

        assert report["components"]["dead_letters"] == "down"
        assert report["status"] == "unhealthy"
