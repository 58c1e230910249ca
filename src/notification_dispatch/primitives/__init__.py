"""Lowest-level building blocks: exceptions and ID generation."""

from __future__ import annotations

from .exceptions import (
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
from .id_generator import IIDGenerator, UUID4Generator

__all__ = [
    "ConfigurationError",
    "DeliveryError",
    "DomainError",
    "EnvelopeStateError",
    "IIDGenerator",
    "InfrastructureError",
    "NotificationDispatchError",
    "ProviderError",
    "ProviderNotFoundError",
    "ProviderRegistrationError",
    "QueueError",
    "QueueUnavailableError",
    "RetryableDeliveryError",
    "TerminalDeliveryError",
    "UUID4Generator",
    "ValidationError",
]
