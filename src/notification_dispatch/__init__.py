"""notification-dispatch — asynchronous notification queue and delivery workers.

Business code calls ``NotificationDispatchService.send``; a ``WorkerPool``
drains the durable queue through one provider per channel, retrying transient
failures with backoff and dead-lettering the rest.
"""

from __future__ import annotations

__version__ = "0.1.0"

# ── Adapters ────────────────────────────────────────────────────
from .adapters import BaseNotificationQueue, InMemoryNotificationQueue
from .admin_service import DeadLetterAdminService, QueueStatistics
from .bootstrap import NotificationDispatchApp, build_queue, default_providers
from .config import DispatchSettings
from .correlation import (
    correlation_scope,
    ensure_correlation_id,
    generate_correlation_id,
    get_causation_id,
    get_correlation_id,
)

# ── Domain ──────────────────────────────────────────────────────
from .domain import (
    TERMINAL_STATUSES,
    Channel,
    DeliveryOutcome,
    EnvelopeStatus,
    NotificationEnvelope,
    NotificationRequest,
    OutcomeKind,
    Priority,
)
from .health import (
    DeadLetterThresholdCheck,
    HealthRegistry,
    HealthState,
    QueueHealthCheck,
)
from .instrumentation import (
    HookRegistration,
    HookRegistry,
    InstrumentationHook,
    get_hook_registry,
    set_hook_registry,
)

# ── Ports ───────────────────────────────────────────────────────
from .ports import IBackgroundWorker, IDeliveryProvider, INotificationQueue

# ── Primitives ──────────────────────────────────────────────────
from .primitives import (
    ConfigurationError,
    DeliveryError,
    DomainError,
    EnvelopeStateError,
    InfrastructureError,
    NotificationDispatchError,
    ProviderError,
    ProviderNotFoundError,
    ProviderRegistrationError,
    QueueError,
    QueueUnavailableError,
    RetryableDeliveryError,
    TerminalDeliveryError,
    ValidationError,
)

# ── Providers ───────────────────────────────────────────────────
from .providers import (
    BaseDeliveryProvider,
    ConsoleProvider,
    InAppInboxProvider,
    InMemoryProvider,
)
from .registry import ProviderRegistry
from .retry import RetryPolicy
from .service import NotificationDispatchService
from .worker import NotificationWorker, WorkerPool

__all__ = [
    "BaseDeliveryProvider",
    "BaseNotificationQueue",
    "Channel",
    "ConfigurationError",
    "ConsoleProvider",
    "DeadLetterAdminService",
    "DeadLetterThresholdCheck",
    "DeliveryError",
    "DeliveryOutcome",
    "DispatchSettings",
    "DomainError",
    "EnvelopeStateError",
    "EnvelopeStatus",
    "HealthRegistry",
    "HealthState",
    "HookRegistration",
    "HookRegistry",
    "IBackgroundWorker",
    "IDeliveryProvider",
    "INotificationQueue",
    "InAppInboxProvider",
    "InMemoryNotificationQueue",
    "InMemoryProvider",
    "InfrastructureError",
    "InstrumentationHook",
    "NotificationDispatchApp",
    "NotificationDispatchError",
    "NotificationDispatchService",
    "NotificationEnvelope",
    "NotificationRequest",
    "NotificationWorker",
    "OutcomeKind",
    "Priority",
    "ProviderError",
    "ProviderNotFoundError",
    "ProviderRegistrationError",
    "ProviderRegistry",
    "QueueError",
    "QueueHealthCheck",
    "QueueStatistics",
    "QueueUnavailableError",
    "RetryPolicy",
    "RetryableDeliveryError",
    "TERMINAL_STATUSES",
    "TerminalDeliveryError",
    "ValidationError",
    "WorkerPool",
    "build_queue",
    "correlation_scope",
    "default_providers",
    "ensure_correlation_id",
    "generate_correlation_id",
    "get_causation_id",
    "get_correlation_id",
    "get_hook_registry",
    "set_hook_registry",
]
