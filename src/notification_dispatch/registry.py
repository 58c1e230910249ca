"""Provider registry — explicit Channel → provider dispatch table."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .domain.envelope import Channel
from .primitives.exceptions import ProviderNotFoundError, ProviderRegistrationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .ports.provider import IDeliveryProvider

logger = logging.getLogger("notification_dispatch.registry")


class ProviderRegistry:
    """
    Closed dispatch table from :class:`Channel` to provider.

    Built once at startup: register every provider, call :meth:`validate` to
    check that every channel is covered, then :meth:`freeze` so nothing can
    be swapped while workers are running.
    """

    def __init__(self) -> None:
        self._providers: dict[Channel, IDeliveryProvider] = {}
        self._frozen = False

    def register(
        self,
        provider: IDeliveryProvider,
        channel: Channel | None = None,
    ) -> None:
        """Register ``provider`` for ``channel`` (default: ``provider.channel``)."""
        if self._frozen:
            raise ProviderRegistrationError(
                "Provider registry is frozen; register providers before startup"
            )
        target = Channel(channel if channel is not None else provider.channel)
        if target in self._providers:
            raise ProviderRegistrationError(
                f"A provider is already registered for channel {target.value}: "
                f"{self._providers[target]!r}"
            )
        self._providers[target] = provider
        logger.debug("Registered %r for channel %s", provider, target.value)

    def resolve(self, channel: Channel) -> IDeliveryProvider:
        try:
            return self._providers[channel]
        except KeyError:
            raise ProviderNotFoundError(channel.value) from None

    def missing_channels(self) -> list[Channel]:
        return [c for c in Channel if c not in self._providers]

    def validate(self, require_all: bool = True) -> None:
        """Exhaustiveness check over the closed Channel enum.

        With ``require_all=False`` missing channels are only logged; their
        jobs are dead-lettered by the worker.
        """
        missing = self.missing_channels()
        if not missing:
            return
        names = ", ".join(c.value for c in missing)
        if require_all:
            raise ProviderRegistrationError(f"No provider registered for: {names}")
        logger.warning("No provider registered for: %s", names)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def channels(self) -> list[Channel]:
        return list(self._providers)

    def __contains__(self, channel: object) -> bool:
        return channel in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    @classmethod
    def from_providers(
        cls,
        providers: Iterable[IDeliveryProvider],
        *,
        require_all: bool = True,
    ) -> ProviderRegistry:
        """Register, validate and freeze in one step."""
        registry = cls()
        for provider in providers:
            registry.register(provider)
        registry.validate(require_all=require_all)
        registry.freeze()
        return registry
