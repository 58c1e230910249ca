"""Health checks for queue reachability, dead-letter backlog and worker heartbeats."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from .domain.envelope import EnvelopeStatus

if TYPE_CHECKING:
    from collections.abc import Callable

    from .ports.queue import INotificationQueue

logger = logging.getLogger("notification_dispatch.health")


class HealthState(str, Enum):
    UP = "up"
    DOWN = "down"


class HealthRegistry:
    """Named checks plus worker heartbeats for one dispatch app.

    A check is any sync or async callable; a truthy result means UP and a
    raised exception means DOWN. A worker is DOWN once its last heartbeat is
    older than ``heartbeat_timeout_seconds``.
    """

    def __init__(
        self,
        heartbeat_timeout_seconds: float = 60,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._checks: dict[str, Callable[[], Any]] = {}
        self._heartbeats: dict[str, datetime] = {}
        self._heartbeat_timeout = heartbeat_timeout_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def register(self, name: str, check: Callable[[], Any]) -> None:
        self._checks[name] = check

    def heartbeat(self, worker_name: str) -> None:
        self._heartbeats[worker_name] = self._clock()

    def forget(self, worker_name: str) -> None:
        """Drop a stopped worker so it no longer counts as DOWN."""
        self._heartbeats.pop(worker_name, None)

    def stale_workers(self) -> list[str]:
        now = self._clock()
        return [
            name
            for name, seen in self._heartbeats.items()
            if (now - seen).total_seconds() >= self._heartbeat_timeout
        ]

    async def _run_check(self, name: str, check: Callable[[], Any]) -> HealthState:
        try:
            value = check()
            if asyncio.iscoroutine(value):
                value = await value
        except Exception:  # noqa: BLE001
            logger.warning("Health check %s raised", name, exc_info=True)
            return HealthState.DOWN
        return HealthState.UP if value else HealthState.DOWN

    async def check_all(self) -> dict[str, str]:
        """Component name → ``"up"`` / ``"down"`` for checks, then workers."""
        result = {
            name: (await self._run_check(name, check)).value
            for name, check in self._checks.items()
        }
        stale = set(self.stale_workers())
        for worker_name in self._heartbeats:
            state = HealthState.DOWN if worker_name in stale else HealthState.UP
            result[worker_name] = state.value
        return result

    async def status(self) -> dict[str, Any]:
        components = await self.check_all()
        healthy = all(v == HealthState.UP.value for v in components.values())
        return {
            "status": "healthy" if healthy else "unhealthy",
            "components": components,
            "timestamp": self._clock().isoformat(),
            "heartbeats": {
                name: seen.isoformat() for name, seen in self._heartbeats.items()
            },
        }


class QueueHealthCheck:
    """UP while the queue's backing store answers."""

    def __init__(self, queue: INotificationQueue) -> None:
        self._queue = queue

    async def __call__(self) -> bool:
        try:
            return bool(await self._queue.health_check())
        except Exception:  # noqa: BLE001
            return False


class DeadLetterThresholdCheck:
    """DOWN once more than ``max_dead_letters`` envelopes sit in FAILED_TERMINAL."""

    def __init__(self, queue: INotificationQueue, max_dead_letters: int) -> None:
        if max_dead_letters < 0:
            raise ValueError("max_dead_letters must be >= 0")
        self._queue = queue
        self.max_dead_letters = max_dead_letters

    async def __call__(self) -> bool:
        counts = await self._queue.count_by_status()
        dead = counts.get(EnvelopeStatus.FAILED_TERMINAL.value, 0)
        if dead > self.max_dead_letters:
            logger.warning(
                "Dead-letter backlog %d exceeds threshold %d",
                dead,
                self.max_dead_letters,
            )
            return False
        return True
