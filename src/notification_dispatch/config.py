"""Dispatch settings.

Environment variables use the ``NOTIFY_`` prefix (e.g. ``NOTIFY_MAX_ATTEMPTS=5``).
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .primitives.exceptions import ConfigurationError
from .retry import RetryPolicy

LEASE_TIMEOUT_MULTIPLIER = 5


class DispatchSettings(BaseSettings):
    """Configuration for the queue, retry policy and worker pool.

    Example:
        # Development: in-memory queue, console providers
        settings = DispatchSettings()

        # Production: PostgreSQL-backed queue
        settings = DispatchSettings(
            queue_backend="sqlalchemy",
            database_url="postgresql+asyncpg://app@db/notifications",
            worker_concurrency=16,
            retry_jitter=True,
        )

    Attributes:
        queue_backend: ``memory`` or ``sqlalchemy``.
        database_url: Async SQLAlchemy URL; required for ``sqlalchemy``.
        max_attempts: Delivery attempts before dead-lettering.
        retry_base_delay: Backoff unit in seconds.
        retry_max_delay: Backoff cap in seconds.
        retry_jitter: Randomise backoff delays.
        delivery_timeout: Per-attempt bound on ``provider.deliver``.
        lease_seconds: Claim lease; defaults to 5 × ``delivery_timeout``.
        worker_concurrency: Number of workers in the pool.
        poll_interval: Idle wait between empty dequeues.
        drain_timeout: Grace period for in-flight deliveries on shutdown.
        require_all_channels: Fail startup if any channel lacks a provider.
        dead_letter_alert_threshold: Health turns DOWN above this many dead
            letters.
        log_level: Level for the ``notification_dispatch`` logger.
    """

    # ─────────────────────────────────────────────────────
    # Queue storage
    # ─────────────────────────────────────────────────────
    queue_backend: Literal["memory", "sqlalchemy"] = Field(
        default="memory",
        description="Queue storage backend.",
    )
    database_url: str | None = Field(
        default=None,
        description="Async SQLAlchemy database URL (sqlalchemy backend).",
    )

    # ─────────────────────────────────────────────────────
    # Retry policy
    # ─────────────────────────────────────────────────────
    max_attempts: int = Field(default=3, ge=1, le=50)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=300.0, ge=0)
    retry_jitter: bool = False

    # ─────────────────────────────────────────────────────
    # Timeouts
    # ─────────────────────────────────────────────────────
    delivery_timeout: float = Field(default=30.0, gt=0)
    lease_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Claim lease in seconds (None = 5 × delivery_timeout).",
    )

    # ─────────────────────────────────────────────────────
    # Worker pool
    # ─────────────────────────────────────────────────────
    worker_concurrency: int = Field(default=4, ge=1, le=256)
    poll_interval: float = Field(default=1.0, gt=0)
    drain_timeout: float = Field(default=30.0, ge=0)
    require_all_channels: bool = True
    dead_letter_alert_threshold: int | None = Field(
        default=None,
        ge=0,
        description="Report unhealthy above this many dead letters (None = off).",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ─────────────────────────────────────────────────────
    # Validation
    # ─────────────────────────────────────────────────────
    @model_validator(mode="after")
    def _validate_delays(self) -> DispatchSettings:
        if self.retry_max_delay < self.retry_base_delay:
            msg = (
                f"retry_max_delay ({self.retry_max_delay}) must be >= "
                f"retry_base_delay ({self.retry_base_delay})"
            )
            raise ValueError(msg)
        return self

    @model_validator(mode="after")
    def _validate_lease(self) -> DispatchSettings:
        if self.lease_seconds is None:
            self.lease_seconds = self.delivery_timeout * LEASE_TIMEOUT_MULTIPLIER
        if self.lease_seconds <= self.delivery_timeout:
            msg = (
                f"lease_seconds ({self.lease_seconds}) must be > "
                f"delivery_timeout ({self.delivery_timeout})"
            )
            raise ValueError(msg)
        return self

    @model_validator(mode="after")
    def _validate_backend(self) -> DispatchSettings:
        if self.queue_backend == "sqlalchemy" and not self.database_url:
            raise ValueError("database_url is required for the sqlalchemy backend")
        return self

    @classmethod
    def load(cls, **overrides: Any) -> DispatchSettings:
        """Build settings from the environment plus overrides.

        Raises:
            ConfigurationError: The combination of values is invalid.
        """
        try:
            return cls(**overrides)
        except PydanticValidationError as exc:
            raise ConfigurationError(str(exc)) from exc

    # ─────────────────────────────────────────────────────
    # Helper methods
    # ─────────────────────────────────────────────────────
    @property
    def effective_lease_seconds(self) -> float:
        if self.lease_seconds is None:
            return self.delivery_timeout * LEASE_TIMEOUT_MULTIPLIER
        return self.lease_seconds

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
            jitter=self.retry_jitter,
        )

    def to_dict(self) -> dict[str, Any]:
        """Settings for logging/debugging, with the database URL password masked."""
        data = self.model_dump()
        data["lease_seconds"] = self.effective_lease_seconds
        if self.database_url and "@" in self.database_url:
            scheme, _, rest = self.database_url.partition("://")
            credentials, _, host = rest.rpartition("@")
            user = credentials.split(":", 1)[0]
            data["database_url"] = f"{scheme}://{user}:***@{host}"
        return data
