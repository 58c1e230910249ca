"""Tests for the logging and metrics instrumentation hooks."""

from __future__ import annotations

import json
import logging

import pytest
from prometheus_client import CollectorRegistry

from notification_dispatch.adapters.memory import InMemoryNotificationQueue
from notification_dispatch.instrumentation import HookRegistry
from notification_dispatch.observability import (
    DEFAULT_OPERATIONS,
    MetricsHook,
    StructuredLoggingHook,
    install_hooks,
)
from notification_dispatch.primitives.exceptions import QueueUnavailableError

from .conftest import make_envelope

STRUCTURED_LOGGER = "notification_dispatch.observability.structured"


def _entries(caplog: pytest.LogCaptureFixture) -> list[dict[str, object]]:
    return [
        json.loads(record.getMessage())
        for record in caplog.records
        if record.name == STRUCTURED_LOGGER
    ]


# ============================================================================
# Tests: MetricsHook
# ============================================================================


class TestMetricsHook:
    @pytest.mark.asyncio
    async def test_counts_success_and_error(
        self, hook_registry: HookRegistry, queue: InMemoryNotificationQueue
    ) -> None:
        metrics = CollectorRegistry()
        hook_registry.register(MetricsHook(registry=metrics))

        await queue.enqueue(make_envelope())
        queue.set_available(False)
        with pytest.raises(QueueUnavailableError):
            await queue.enqueue(make_envelope())

        success = {"operation": "queue.enqueue.MEDIUM", "outcome": "success"}
        error = {"operation": "queue.enqueue.MEDIUM", "outcome": "error"}
        assert metrics.get_sample_value("notification_operation_total", success) == 1
        assert metrics.get_sample_value("notification_operation_total", error) == 1
        assert (
            metrics.get_sample_value(
                "notification_operation_duration_seconds_count", success
            )
            == 1
        )

    @pytest.mark.asyncio
    async def test_dead_letter_events_are_counted(
        self, hook_registry: HookRegistry, queue: InMemoryNotificationQueue
    ) -> None:
        metrics = CollectorRegistry()
        hook_registry.register(MetricsHook(registry=metrics, namespace="notify"))
        envelope = await queue.enqueue(make_envelope())
        await queue.dequeue()

        await queue.fail(envelope.id, retryable=False, reason="bounced")

        labels = {"operation": "queue.dead_letter", "outcome": "success"}
        assert metrics.get_sample_value("notify_operation_total", labels) == 1


# ============================================================================
# Tests: StructuredLoggingHook
# ============================================================================


class TestStructuredLoggingHook:
    @pytest.mark.asyncio
    async def test_logs_json_entry(
        self,
        hook_registry: HookRegistry,
        queue: InMemoryNotificationQueue,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        hook_registry.register(StructuredLoggingHook())
        envelope = make_envelope(correlation_id="corr-9")

        with caplog.at_level(logging.INFO, logger=STRUCTURED_LOGGER):
            await queue.enqueue(envelope)

        [entry] = _entries(caplog)
        assert entry["operation"] == "queue.enqueue.MEDIUM"
        assert entry["outcome"] == "success"
        assert entry["correlation_id"] == "corr-9"
        assert entry["envelope.id"] == envelope.id
        assert "duration_ms" in entry

    @pytest.mark.asyncio
    async def test_logs_error(
        self,
        hook_registry: HookRegistry,
        queue: InMemoryNotificationQueue,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        hook_registry.register(StructuredLoggingHook())
        queue.set_available(False)

        with caplog.at_level(logging.INFO, logger=STRUCTURED_LOGGER):
            with pytest.raises(QueueUnavailableError):
                await queue.dequeue()

        [entry] = _entries(caplog)
        assert entry["outcome"] == "error"
        assert str(entry["error"]).startswith("QueueUnavailableError")


# ============================================================================
# Tests: install_hooks
# ============================================================================


class TestInstallHooks:
    def test_installs_both_hooks(self, hook_registry: HookRegistry) -> None:
        registrations = install_hooks(
            registry=hook_registry, metrics_registry=CollectorRegistry()
        )

        assert len(registrations) == 2
        assert all(r.operations == tuple(DEFAULT_OPERATIONS) for r in registrations)

    def test_can_disable_metrics(self, hook_registry: HookRegistry) -> None:
        registrations = install_hooks(registry=hook_registry, metrics=False)

        assert len(registrations) == 1
        assert isinstance(registrations[0].hook, StructuredLoggingHook)

    @pytest.mark.asyncio
    async def test_filters_by_operation(
        self,
        hook_registry: HookRegistry,
        queue: InMemoryNotificationQueue,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        install_hooks(
            registry=hook_registry,
            metrics=False,
            operations=["queue.dequeue"],
        )

        with caplog.at_level(logging.INFO, logger=STRUCTURED_LOGGER):
            await queue.enqueue(make_envelope())
            await queue.dequeue()

        assert [e["operation"] for e in _entries(caplog)] == ["queue.dequeue"]
