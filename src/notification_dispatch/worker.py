"""NotificationWorker and WorkerPool — background delivery of queued notifications."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any, cast

from .correlation import correlation_scope
from .domain.delivery import DeliveryOutcome
from .instrumentation import get_hook_registry
from .ports.background_worker import IBackgroundWorker
from .primitives.exceptions import ProviderNotFoundError, QueueUnavailableError

if TYPE_CHECKING:
    from collections.abc import Callable

    from .domain.envelope import NotificationEnvelope
    from .health import HealthRegistry
    from .instrumentation import HookRegistry
    from .ports.provider import IDeliveryProvider
    from .ports.queue import INotificationQueue
    from .registry import ProviderRegistry

logger = logging.getLogger("notification_dispatch.worker")


class _FailedOutcome(Exception):
    """A provider returned a non-success outcome instead of raising."""

    def __init__(self, outcome: DeliveryOutcome) -> None:
        self.outcome = outcome
        super().__init__(outcome.reason or outcome.kind.value)


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


class NotificationWorker(IBackgroundWorker):
    """Delivers queued notifications one at a time.

    Loop: claim the next job; if the queue is empty wait on the trigger
    event for up to ``poll_interval`` seconds, otherwise deliver it through
    the channel's provider and report the verdict back to the queue.

    Each ``provider.deliver`` call is bounded by ``delivery_timeout``; a
    timeout counts as a retryable failure. A worker that dies mid-delivery
    leaves the job IN_FLIGHT; the queue hands it out again once its lease
    expires. Verdicts carry the claim's ``attempt_count``, so a report that
    arrives after the job was re-claimed is ignored by the queue.

    Implements ``IBackgroundWorker`` (``start`` / ``stop``).
    """

    def __init__(
        self,
        queue: INotificationQueue,
        registry: ProviderRegistry,
        *,
        delivery_timeout: float = 30.0,
        poll_interval: float = 1.0,
        name: str = "notification-worker",
        on_heartbeat: Callable[[str], None] | None = None,
        hooks: HookRegistry | None = None,
    ) -> None:
        if delivery_timeout <= 0:
            raise ValueError("delivery_timeout must be > 0")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        self._queue = queue
        self._registry = registry
        self._delivery_timeout = delivery_timeout
        self._poll_interval = poll_interval
        self._name = name
        self._on_heartbeat = on_heartbeat
        self._hooks = hooks if hooks is not None else get_hook_registry()
        self._running = False
        self._busy = False
        self._task: asyncio.Task[None] | None = None
        self._trigger = asyncio.Event()

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def busy(self) -> bool:
        """True while a delivery is in progress."""
        return self._busy

    def trigger(self) -> None:
        """Wake the worker immediately."""
        self._trigger.set()

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop(), name=self._name)
        logger.info(
            "%s started (poll_interval=%.1fs, delivery_timeout=%.1fs)",
            self._name,
            self._poll_interval,
            self._delivery_timeout,
        )

    async def stop(self, timeout: float = 5.0) -> None:
        """Stop claiming jobs and wait up to ``timeout`` for the current one.

        A delivery still running after ``timeout`` is cancelled; its job stays
        IN_FLIGHT until the lease expires.
        """
        self._running = False
        self._trigger.set()
        if self._task:
            try:
                await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "%s did not drain within %.1fs; cancelling", self._name, timeout
                )
                self._task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._task
            self._task = None
        logger.info("%s stopped", self._name)

    async def run_once(self) -> bool:
        """Claim and process at most one job (useful in tests).

        Returns True if a job was processed.
        """
        envelope = await self._queue.dequeue()
        if envelope is None:
            return False
        await self.process(envelope)
        return True

    async def _run_loop(self) -> None:
        while self._running:
            self._heartbeat()
            try:
                processed = await self.run_once()
            except QueueUnavailableError as exc:
                logger.warning(
                    "%s: queue unavailable (%s); retrying in %.1fs",
                    self._name,
                    exc,
                    self._poll_interval,
                )
                processed = False
            except Exception:
                logger.exception("%s error", self._name)
                processed = False
            if processed or not self._running:
                continue
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(
                    self._trigger.wait(), timeout=self._poll_interval
                )
            self._trigger.clear()

    def _heartbeat(self) -> None:
        if self._on_heartbeat is None:
            return
        try:
            self._on_heartbeat(self._name)
        except Exception:  # noqa: BLE001
            logger.debug("Heartbeat callback failed", exc_info=True)

    # -- delivery ---------------------------------------------------------

    async def process(self, envelope: NotificationEnvelope) -> None:
        """Deliver a claimed envelope and acknowledge or fail it."""
        self._busy = True
        try:
            with correlation_scope(envelope.correlation_id, envelope.id):
                await self._deliver(envelope)
        finally:
            self._busy = False

    async def _deliver(self, envelope: NotificationEnvelope) -> None:
        try:
            provider = self._registry.resolve(envelope.channel)
        except ProviderNotFoundError as exc:
            logger.error("%s: %s; dead-lettering %s", self._name, exc, envelope.id)
            await self._queue.fail(
                envelope.id,
                retryable=False,
                reason=str(exc),
                attempt=envelope.attempt_count,
            )
            return

        attributes: dict[str, Any] = {
            "envelope.id": envelope.id,
            "envelope.channel": envelope.channel.value,
            "envelope.priority": envelope.priority.value,
            "envelope.attempt": envelope.attempt_count,
            "worker.name": self._name,
            "correlation_id": envelope.correlation_id,
        }
        try:
            outcome = cast(
                "DeliveryOutcome",
                await self._hooks.execute_all(
                    f"delivery.attempt.{envelope.channel.value}",
                    attributes,
                    lambda: self._attempt(provider, envelope),
                ),
            )
        except _FailedOutcome as failed:
            await self._queue.fail(
                envelope.id,
                retryable=failed.outcome.is_retryable,
                reason=failed.outcome.reason,
                attempt=envelope.attempt_count,
            )
            return
        except asyncio.TimeoutError:
            await self._queue.fail(
                envelope.id,
                retryable=True,
                reason=f"Delivery timed out after {self._delivery_timeout:.1f}s",
                attempt=envelope.attempt_count,
            )
            return
        except Exception as exc:
            retryable = provider.is_retryable(exc)
            logger.warning(
                "%s: provider %r raised for %s (retryable=%s): %s",
                self._name,
                provider,
                envelope.id,
                retryable,
                _describe(exc),
            )
            await self._queue.fail(
                envelope.id,
                retryable=retryable,
                reason=_describe(exc),
                attempt=envelope.attempt_count,
            )
            return

        logger.debug(
            "%s: delivered %s via %s (provider_id=%s)",
            self._name,
            envelope.id,
            envelope.channel.value,
            outcome.provider_id,
        )
        await self._queue.acknowledge(envelope.id, attempt=envelope.attempt_count)

    async def _attempt(
        self, provider: IDeliveryProvider, envelope: NotificationEnvelope
    ) -> DeliveryOutcome:
        outcome = await asyncio.wait_for(
            provider.deliver(envelope), timeout=self._delivery_timeout
        )
        if not outcome.is_success:
            raise _FailedOutcome(outcome)
        return outcome


class WorkerPool(IBackgroundWorker):
    """``concurrency`` workers sharing one queue and provider registry.

    Workers never coordinate directly; the queue's claim is the only mutual
    exclusion between them.
    """

    def __init__(
        self,
        queue: INotificationQueue,
        registry: ProviderRegistry,
        *,
        concurrency: int = 4,
        delivery_timeout: float = 30.0,
        poll_interval: float = 1.0,
        drain_timeout: float = 30.0,
        health: HealthRegistry | None = None,
        name: str = "notification-worker",
        hooks: HookRegistry | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if hooks is None:
            hooks = get_hook_registry()
        self._drain_timeout = drain_timeout
        self._health = health
        self._workers = [
            NotificationWorker(
                queue,
                registry,
                delivery_timeout=delivery_timeout,
                poll_interval=poll_interval,
                name=f"{name}-{index}",
                on_heartbeat=health.heartbeat if health is not None else None,
                hooks=hooks,
            )
            for index in range(concurrency)
        ]

    @property
    def workers(self) -> list[NotificationWorker]:
        return list(self._workers)

    @property
    def is_running(self) -> bool:
        return any(worker.is_running for worker in self._workers)

    def trigger(self) -> None:
        """Wake every worker (e.g. after an enqueue)."""
        for worker in self._workers:
            worker.trigger()

    async def start(self) -> None:
        for worker in self._workers:
            await worker.start()
        logger.info("WorkerPool started with %d worker(s)", len(self._workers))

    async def stop(self, drain_timeout: float | None = None) -> None:
        """Stop all workers, draining in-flight deliveries first."""
        timeout = self._drain_timeout if drain_timeout is None else drain_timeout
        await asyncio.gather(*(worker.stop(timeout) for worker in self._workers))
        if self._health is not None:
            for worker in self._workers:
                self._health.forget(worker.name)
        logger.info("WorkerPool stopped")
