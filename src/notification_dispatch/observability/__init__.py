"""Observability — structured logging and Prometheus metrics via instrumentation hooks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..instrumentation import HookRegistry, get_hook_registry
from .metrics import MetricsHook
from .structured_logging import StructuredLoggingHook

if TYPE_CHECKING:
    from prometheus_client import CollectorRegistry

    from ..instrumentation import HookRegistration

logger = logging.getLogger("notification_dispatch.observability")

DEFAULT_OPERATIONS: list[str] = [
    "dispatch.send.*",
    "queue.*",
    "delivery.attempt.*",
]


def install_hooks(
    *,
    registry: HookRegistry | None = None,
    structured_logging: bool = True,
    metrics: bool = True,
    metrics_registry: CollectorRegistry | None = None,
    operations: list[str] | None = None,
    priority: int = -100,
) -> list[HookRegistration]:
    """Install logging and metrics hooks into the instrumentation registry."""
    hooks = registry if registry is not None else get_hook_registry()
    registrations: list[HookRegistration] = []
    if metrics:
        registrations.append(
            hooks.register(
                MetricsHook(registry=metrics_registry),
                priority=priority,
                operations=operations or DEFAULT_OPERATIONS,
            )
        )
    if structured_logging:
        registrations.append(
            hooks.register(
                StructuredLoggingHook(),
                priority=priority + 1,
                operations=operations or DEFAULT_OPERATIONS,
            )
        )
    logger.info("Observability hooks installed (%d)", len(registrations))
    return registrations


__all__ = [
    "DEFAULT_OPERATIONS",
    "MetricsHook",
    "StructuredLoggingHook",
    "install_hooks",
]
