"""NotificationDispatchService — validate, envelope and enqueue notification requests."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, cast

from .correlation import ensure_correlation_id
from .domain.envelope import NotificationEnvelope
from .domain.request import NotificationRequest
from .instrumentation import get_hook_registry
from .primitives.exceptions import QueueUnavailableError, ValidationError
from .primitives.id_generator import IIDGenerator, UUID4Generator

if TYPE_CHECKING:
    from collections.abc import Callable

    from .instrumentation import HookRegistry
    from .ports.queue import INotificationQueue

logger = logging.getLogger("notification_dispatch.service")

RequestLike = NotificationRequest | Mapping[str, Any]


class NotificationDispatchService:
    """Entry point used by business code to request a notification.

    Enqueues and returns immediately; delivery happens later on a worker.
    Dispatch-time failures (validation, queue outage) raise synchronously
    from :meth:`send`. Use :meth:`notify` from primary business flows that
    must never fail because a notification could not be queued.

    Optional ``on_enqueued``: pass ``WorkerPool.trigger`` so idle workers
    wake as soon as a job is queued instead of at their next poll.
    """

    def __init__(
        self,
        queue: INotificationQueue,
        *,
        on_enqueued: Callable[[], None] | None = None,
        id_generator: IIDGenerator | None = None,
        hooks: HookRegistry | None = None,
    ) -> None:
        self._queue = queue
        self._hooks = hooks if hooks is not None else get_hook_registry()
        self._on_enqueued = on_enqueued
        self._id_generator = id_generator or UUID4Generator()

    def set_on_enqueued(self, callback: Callable[[], None] | None) -> None:
        """Set or clear the callback invoked after each successful enqueue."""
        self._on_enqueued = callback

    # -- commands ---------------------------------------------------------

    async def send(
        self,
        request: RequestLike | None = None,
        /,
        **fields: Any,
    ) -> NotificationEnvelope:
        """Validate and enqueue a notification.

        Accepts a ``NotificationRequest``, a mapping in wire shape
        (``userId``, ``channel``, ``title``, ``message``, ``priority``) or the
        same fields as keyword arguments.

        Raises:
            ValidationError: The request is malformed.
            QueueUnavailableError: The queue could not accept the job.
        """
        parsed = self._parse(request, fields)
        envelope = NotificationEnvelope(
            id=self._id_generator.next_id(),
            user_id=parsed.user_id,
            channel=parsed.channel,
            title=parsed.title,
            body=parsed.message,
            priority=parsed.priority,
            correlation_id=ensure_correlation_id(),
            metadata=dict(parsed.metadata),
        )

        attributes = {
            "envelope.id": envelope.id,
            "envelope.channel": envelope.channel.value,
            "envelope.priority": envelope.priority.value,
            "correlation_id": envelope.correlation_id,
        }
        return cast(
            "NotificationEnvelope",
            await self._hooks.execute_all(
                f"dispatch.send.{envelope.channel.value}",
                attributes,
                lambda: self._send_internal(envelope),
            ),
        )

    async def _send_internal(self, envelope: NotificationEnvelope) -> NotificationEnvelope:
        stored = await self._queue.enqueue(envelope)
        if self._on_enqueued is not None:
            try:
                self._on_enqueued()
            except Exception:  # noqa: BLE001
                logger.debug("on_enqueued callback failed", exc_info=True)
        return stored

    async def notify(
        self,
        request: RequestLike | None = None,
        /,
        **fields: Any,
    ) -> NotificationEnvelope | None:
        """Like :meth:`send`, but never raises dispatch-time errors.

        Returns None when the notification was not queued; the reason is
        logged.
        """
        try:
            return await self.send(request, **fields)
        except ValidationError as exc:
            logger.error("Rejected malformed notification request: %s", exc.errors)
        except QueueUnavailableError:
            logger.warning(
                "Notification queue unavailable; notification dropped", exc_info=True
            )
        return None

    async def cancel(self, envelope_id: str) -> bool:
        """Best-effort cancel of a notification that has not started delivery."""
        return await self._queue.cancel(envelope_id)

    async def get(self, envelope_id: str) -> NotificationEnvelope | None:
        """Fetch a single envelope by ID."""
        return await self._queue.get(envelope_id)

    # -- helpers ----------------------------------------------------------

    @staticmethod
    def _parse(request: RequestLike | None, fields: dict[str, Any]) -> NotificationRequest:
        if isinstance(request, NotificationRequest):
            if fields:
                raise TypeError("Pass either a NotificationRequest or fields, not both")
            return request
        data: dict[str, Any] = dict(request or {})
        data.update(fields)
        return NotificationRequest.parse(data)
