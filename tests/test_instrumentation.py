"""Tests for the instrumentation hook registry."""

from __future__ import annotations

from typing import Any

import pytest

from notification_dispatch.adapters.memory import InMemoryNotificationQueue
from notification_dispatch.domain import Channel, Priority
from notification_dispatch.instrumentation import (
    HookRegistry,
    InstrumentationHook,
    get_hook_registry,
)

from .conftest import RecordingHook, make_envelope


class _Tagging:
    def __init__(self, name: str, trail: list[str]) -> None:
        self.name = name
        self.trail = trail

    async def __call__(
        self, operation: str, attributes: dict[str, Any], next_handler: Any
    ) -> Any:
        self.trail.append(f"{self.name}:in")
        result = await next_handler()
        self.trail.append(f"{self.name}:out")
        return result


class TestHookRegistry:
    @pytest.mark.asyncio
    async def test_lower_priority_runs_outermost(self) -> None:
        registry = HookRegistry()
        trail: list[str] = []
        registry.register(_Tagging("inner", trail), priority=10)
        registry.register(_Tagging("outer", trail), priority=-10)

        async def work() -> str:
            trail.append("work")
            return "done"

        result = await registry.execute_all("queue.dequeue", {}, work)

        assert result == "done"
        assert trail == ["outer:in", "inner:in", "work", "inner:out", "outer:out"]

    @pytest.mark.asyncio
    async def test_operation_patterns(self) -> None:
        registry = HookRegistry()
        hook = RecordingHook()
        registry.register(hook, operations=["delivery.attempt.*"])

        async def work() -> None:
            return None

        await registry.execute_all("delivery.attempt.SMS", {}, work)
        await registry.execute_all("queue.dequeue", {}, work)

        assert hook.operations() == ["delivery.attempt.SMS"]

    @pytest.mark.asyncio
    async def test_channel_and_priority_scoping(
        self, hook_registry: HookRegistry, queue: InMemoryNotificationQueue
    ) -> None:
        sms_only = RecordingHook()
        urgent_only = RecordingHook()
        hook_registry.register(sms_only, channels=[Channel.SMS])
        hook_registry.register(urgent_only, priorities=["URGENT"])

        await queue.enqueue(make_envelope(channel=Channel.SMS))
        await queue.enqueue(make_envelope(priority=Priority.URGENT))
        await queue.dequeue()

        assert sms_only.operations() == ["queue.enqueue.MEDIUM"]
        assert urgent_only.operations() == ["queue.enqueue.URGENT"]

    @pytest.mark.asyncio
    async def test_disabled_and_unregistered_hooks_are_skipped(self) -> None:
        registry = HookRegistry()
        disabled = RecordingHook()
        removed = RecordingHook()
        registry.register(disabled, enabled=False)
        registration = registry.register(removed)
        registry.unregister(registration)

        async def work() -> None:
            return None

        await registry.execute_all("queue.dequeue", {}, work)

        assert disabled.calls == []
        assert removed.calls == []
        assert len(registry.registrations) == 1

    @pytest.mark.asyncio
    async def test_emit_swallows_hook_failures(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        registry = HookRegistry()

        async def broken(operation: str, attributes: dict[str, Any], next_handler: Any) -> Any:
            raise RuntimeError("exporter down")

        registry.register(broken)

        await registry.emit("queue.dead_letter", {"envelope.id": "x"})

        assert "Instrumentation hook failed for queue.dead_letter" in caplog.text

    def test_context_registry(self, hook_registry: HookRegistry) -> None:
        assert get_hook_registry() is hook_registry
        assert isinstance(RecordingHook(), InstrumentationHook)
