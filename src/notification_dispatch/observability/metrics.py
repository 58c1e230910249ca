"""MetricsHook — Prometheus counters/histograms for queue and delivery operations.

Emits ``notification_operation_duration_seconds`` and
``notification_operation_total`` with labels ``{operation, outcome}``, where
*operation* is the instrumentation operation name (``queue.enqueue.HIGH``,
``delivery.attempt.EMAIL``, ``queue.dead_letter``, ...).
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

_logger = logging.getLogger("notification_dispatch.observability.metrics")


class MetricsHook:
    """Records duration and outcome per instrumented operation.

    Prometheus metrics:
      - ``<namespace>_operation_duration_seconds{operation, outcome}``
      - ``<namespace>_operation_total{operation, outcome}``

    Pass a private ``CollectorRegistry`` when more than one hook is created
    in a process (tests), since metric names are global per registry.
    """

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        namespace: str = "notification",
    ) -> None:
        registry = registry if registry is not None else REGISTRY
        self._histogram = Histogram(
            f"{namespace}_operation_duration_seconds",
            "Instrumented operation duration",
            ["operation", "outcome"],
            registry=registry,
        )
        self._counter = Counter(
            f"{namespace}_operation_total",
            "Instrumented operation count",
            ["operation", "outcome"],
            registry=registry,
        )

    async def __call__(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        start = time.monotonic()
        outcome = "success"
        try:
            return await next_handler()
        except Exception:
            outcome = "error"
            raise
        finally:
            try:
                labels = {"operation": operation, "outcome": outcome}
                self._histogram.labels(**labels).observe(time.monotonic() - start)
                self._counter.labels(**labels).inc()
            except Exception:  # noqa: BLE001
                _logger.debug("Failed to emit metrics labels", exc_info=True)
