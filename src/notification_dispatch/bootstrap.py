"""Application wiring."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .adapters.memory import InMemoryNotificationQueue
from .admin_service import DeadLetterAdminService
from .config import DispatchSettings
from .domain.envelope import Channel
from .health import DeadLetterThresholdCheck, HealthRegistry, QueueHealthCheck
from .instrumentation import HookRegistry, get_hook_registry
from .primitives.exceptions import ConfigurationError
from .providers import ConsoleProvider, InAppInboxProvider
from .registry import ProviderRegistry
from .service import NotificationDispatchService
from .worker import WorkerPool

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import datetime
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from .ports.provider import IDeliveryProvider
    from .ports.queue import INotificationQueue

logger = logging.getLogger("notification_dispatch.bootstrap")


def build_queue(
    settings: DispatchSettings,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    clock: Callable[[], datetime] | None = None,
    hooks: HookRegistry | None = None,
) -> INotificationQueue:
    """Create the queue adapter selected by ``settings.queue_backend``."""
    policy = settings.retry_policy()
    if settings.queue_backend == "memory":
        return InMemoryNotificationQueue(
            policy,
            lease_seconds=settings.effective_lease_seconds,
            clock=clock,
            hooks=hooks,
        )
    if session_factory is None:
        raise ConfigurationError("The sqlalchemy backend needs a session factory")

    from .adapters.sqlalchemy import SQLAlchemyNotificationQueue

    return SQLAlchemyNotificationQueue(
        session_factory,
        policy,
        lease_seconds=settings.effective_lease_seconds,
        clock=clock,
        hooks=hooks,
    )


def default_providers() -> list[IDeliveryProvider]:
    """Development providers: console output for external channels, inbox for IN_APP."""
    return [
        ConsoleProvider(Channel.EMAIL, output_to_stdout=False),
        ConsoleProvider(Channel.SMS, output_to_stdout=False),
        ConsoleProvider(Channel.PUSH, output_to_stdout=False),
        InAppInboxProvider(),
    ]


class NotificationDispatchApp:
    """Holds one explicitly constructed queue and everything that shares it.

    Example::

        async with NotificationDispatchApp(settings, providers=[...]) as app:
            await app.service.send(
                userId="u-1", channel="EMAIL", title="Hi", message="Welcome"
            )

    On start the SQL schema is created (sqlalchemy backend) and the worker
    pool starts; on exit the pool drains for ``settings.drain_timeout``.

    ``hooks`` is the instrumentation registry shared by the service, the
    queue it builds and every worker; it defaults to the registry bound to
    the constructing context, so ``install_hooks()`` called there later still
    sees worker-side events. A caller-supplied ``queue`` keeps its own hooks.
    """

    def __init__(
        self,
        settings: DispatchSettings | None = None,
        *,
        providers: Iterable[IDeliveryProvider] | None = None,
        queue: INotificationQueue | None = None,
        engine: AsyncEngine | None = None,
        clock: Callable[[], datetime] | None = None,
        health: HealthRegistry | None = None,
        hooks: HookRegistry | None = None,
    ) -> None:
        self.settings = settings or DispatchSettings()
        self.hooks = hooks if hooks is not None else get_hook_registry()
        self._engine = engine
        self._owns_engine = False

        if queue is None:
            session_factory = None
            if self.settings.queue_backend == "sqlalchemy":
                session_factory = self._create_session_factory()
            queue = build_queue(
                self.settings,
                session_factory=session_factory,
                clock=clock,
                hooks=self.hooks,
            )
        self.queue = queue

        self.registry = ProviderRegistry.from_providers(
            providers if providers is not None else default_providers(),
            require_all=self.settings.require_all_channels,
        )
        self.health = health or HealthRegistry(
            heartbeat_timeout_seconds=max(60.0, self.settings.poll_interval * 10)
        )
        self.health.register("queue", QueueHealthCheck(self.queue))
        if self.settings.dead_letter_alert_threshold is not None:
            self.health.register(
                "dead_letters",
                DeadLetterThresholdCheck(
                    self.queue, self.settings.dead_letter_alert_threshold
                ),
            )
        self.pool = WorkerPool(
            self.queue,
            self.registry,
            concurrency=self.settings.worker_concurrency,
            delivery_timeout=self.settings.delivery_timeout,
            poll_interval=self.settings.poll_interval,
            drain_timeout=self.settings.drain_timeout,
            health=self.health,
            hooks=self.hooks,
        )
        self.service = NotificationDispatchService(
            self.queue, on_enqueued=self.pool.trigger, hooks=self.hooks
        )
        self.admin = DeadLetterAdminService(self.queue)
        self._started = False

    def _create_session_factory(self) -> async_sessionmaker[AsyncSession]:
        from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

        if self._engine is None:
            if not self.settings.database_url:
                raise ConfigurationError("database_url is required for sqlalchemy")
            self._engine = create_async_engine(self.settings.database_url)
            self._owns_engine = True
        return async_sessionmaker(self._engine, expire_on_commit=False)

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            return
        logging.getLogger("notification_dispatch").setLevel(self.settings.log_level)
        if self._engine is not None:
            from .adapters.sqlalchemy import create_schema

            await create_schema(self._engine)
        await self.pool.start()
        self._started = True
        logger.info("Notification dispatch started: %s", self.settings.to_dict())

    async def stop(self) -> None:
        if not self._started:
            return
        await self.pool.stop()
        if self._owns_engine and self._engine is not None:
            await self._engine.dispose()
        self._started = False
        logger.info("Notification dispatch stopped")

    async def health_status(self) -> dict[str, Any]:
        return await self.health.status()

    async def __aenter__(self) -> NotificationDispatchApp:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()
