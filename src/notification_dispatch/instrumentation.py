"""Instrumentation hooks: the observability sink for queue and delivery events.

Every enqueue, dequeue, delivery attempt, failure and dead-letter event runs
through :class:`HookRegistry`. Hooks wrap the operation, so a logging or
metrics hook sees both the outcome and the duration.

Operation names::

    dispatch.send.<CHANNEL>
    queue.enqueue.<PRIORITY>
    queue.dequeue
    queue.acknowledge
    queue.fail
    queue.dead_letter
    queue.lease_expired
    delivery.attempt.<CHANNEL>

A registration can be narrowed with glob ``operations`` patterns and with
``channels`` / ``priorities``, which are matched against the
``envelope.channel`` / ``envelope.priority`` attributes. Operations that do
not carry those attributes (``queue.dequeue``, ``queue.acknowledge``) never
reach a channel- or priority-scoped hook.
"""

from __future__ import annotations

import fnmatch
import functools
import logging
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

logger = logging.getLogger("notification_dispatch.instrumentation")

_MATCH_CACHE_MAX_SIZE = 1024


@runtime_checkable
class InstrumentationHook(Protocol):
    """Wraps an instrumented operation; must await ``next_handler`` exactly once."""

    async def __call__(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any: ...


def _values(items: Iterable[Any] | None) -> frozenset[str]:
    # Accepts Channel / Priority members or their string values.
    return frozenset(getattr(item, "value", item) for item in items or ())


@dataclass(eq=False)
class HookRegistration:
    """A hook plus the filters deciding which operations it sees."""

    hook: InstrumentationHook
    priority: int = 0
    operations: tuple[str, ...] = ()
    channels: frozenset[str] = frozenset()
    priorities: frozenset[str] = frozenset()
    predicate: Callable[[str, dict[str, Any]], bool] | None = None
    enabled: bool = True
    _operation_cache: dict[str, bool] = field(default_factory=dict, repr=False)

    def matches(self, operation: str, attributes: dict[str, Any]) -> bool:
        if not self.enabled or not self._matches_operation(operation):
            return False
        if self.channels and attributes.get("envelope.channel") not in self.channels:
            return False
        if (
            self.priorities
            and attributes.get("envelope.priority") not in self.priorities
        ):
            return False
        return self.predicate is None or self.predicate(operation, attributes)

    def _matches_operation(self, operation: str) -> bool:
        if not self.operations:
            return True
        cached = self._operation_cache.get(operation)
        if cached is None:
            cached = any(fnmatch.fnmatchcase(operation, p) for p in self.operations)
            if len(self._operation_cache) >= _MATCH_CACHE_MAX_SIZE:
                self._operation_cache.clear()
            self._operation_cache[operation] = cached
        return cached

    def clear_cache(self) -> None:
        self._operation_cache.clear()


class HookRegistry:
    """Ordered set of hook registrations.

    Lower ``priority`` runs outermost; registrations with equal priority keep
    their registration order.
    """

    def __init__(self) -> None:
        self._registrations: list[HookRegistration] = []

    @property
    def registrations(self) -> list[HookRegistration]:
        return list(self._registrations)

    def register(
        self,
        hook: InstrumentationHook,
        *,
        priority: int = 0,
        operations: Iterable[str] | None = None,
        channels: Iterable[Any] | None = None,
        priorities: Iterable[Any] | None = None,
        predicate: Callable[[str, dict[str, Any]], bool] | None = None,
        enabled: bool = True,
    ) -> HookRegistration:
        registration = HookRegistration(
            hook=hook,
            priority=priority,
            operations=tuple(operations or ()),
            channels=_values(channels),
            priorities=_values(priorities),
            predicate=predicate,
            enabled=enabled,
        )
        self._registrations.append(registration)
        self._registrations.sort(key=lambda r: r.priority)
        return registration

    def unregister(self, registration: HookRegistration) -> None:
        if registration in self._registrations:
            self._registrations.remove(registration)

    async def execute_all(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Run ``next_handler`` inside every matching hook."""
        handler = next_handler
        for registration in reversed(self._registrations):
            if registration.matches(operation, attributes):
                handler = functools.partial(
                    registration.hook, operation, attributes, handler
                )
        return await handler()

    async def emit(self, operation: str, attributes: dict[str, Any]) -> None:
        """Report a point-in-time event such as a dead-letter.

        Hook failures are logged and never reach the caller.
        """
        if not self._registrations:
            return

        async def _event() -> None:
            return None

        try:
            await self.execute_all(operation, attributes, _event)
        except Exception:  # noqa: BLE001
            logger.warning("Instrumentation hook failed for %s", operation, exc_info=True)

    def clear(self) -> None:
        for registration in self._registrations:
            registration.clear_cache()
        self._registrations.clear()


_hook_registry_var: ContextVar[HookRegistry | None] = ContextVar(
    "notification_hook_registry", default=None
)


def get_hook_registry() -> HookRegistry:
    """Return the registry bound to the current context, creating one if needed.

    Worker tasks inherit the registry of the context that started them.
    """
    registry = _hook_registry_var.get()
    if registry is None:
        registry = HookRegistry()
        _hook_registry_var.set(registry)
    return registry


def set_hook_registry(registry: HookRegistry) -> None:
    _hook_registry_var.set(registry)
