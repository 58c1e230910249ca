"""StructuredLoggingHook — JSON log entries with correlation context."""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from ..correlation import get_correlation_id

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

_log = logging.getLogger("notification_dispatch.observability.structured")


class StructuredLoggingHook:
    """Emits one JSON log entry per operation with outcome, duration and attributes."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._log = logger or _log

    async def __call__(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        start = time.monotonic()
        outcome = "success"
        error: str | None = None
        try:
            return await next_handler()
        except Exception as exc:  # noqa: BLE001
            outcome = "error"
            error = f"{type(exc).__name__}: {exc}"
            raise
        finally:
            try:
                duration_ms = (time.monotonic() - start) * 1000
                entry: dict[str, Any] = {
                    "operation": operation,
                    "outcome": outcome,
                    "duration_ms": round(duration_ms, 2),
                    "correlation_id": attributes.get("correlation_id")
                    or get_correlation_id(),
                }
                entry.update(
                    (key, value)
                    for key, value in attributes.items()
                    if key != "correlation_id" and value is not None
                )
                if error is not None:
                    entry["error"] = error
                self._log.info(json.dumps(entry, default=str))
            except Exception:  # noqa: BLE001
                _log.debug("Failed to emit structured log entry", exc_info=True)
