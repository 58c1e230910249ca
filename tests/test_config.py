"""Tests for DispatchSettings."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from notification_dispatch.config import DispatchSettings
from notification_dispatch.primitives.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    for name in (
        "NOTIFY_MAX_ATTEMPTS",
        "NOTIFY_QUEUE_BACKEND",
        "NOTIFY_DATABASE_URL",
        "NOTIFY_DELIVERY_TIMEOUT",
        "NOTIFY_LEASE_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)


class TestDispatchSettings:
    def test_defaults(self) -> None:
        settings = DispatchSettings()

        assert settings.queue_backend == "memory"
        assert settings.max_attempts == 3
        assert settings.delivery_timeout == 30.0
        assert settings.lease_seconds == 150.0
        assert settings.effective_lease_seconds == 150.0
        assert settings.worker_concurrency == 4

    def test_lease_follows_delivery_timeout(self) -> None:
        settings = DispatchSettings(delivery_timeout=10)

        assert settings.effective_lease_seconds == 50.0

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NOTIFY_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("NOTIFY_QUEUE_BACKEND", "sqlalchemy")
        monkeypatch.setenv("NOTIFY_DATABASE_URL", "sqlite+aiosqlite:///jobs.db")

        settings = DispatchSettings()

        assert settings.max_attempts == 5
        assert settings.queue_backend == "sqlalchemy"
        assert settings.database_url == "sqlite+aiosqlite:///jobs.db"

    def test_reads_dotenv_file(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("NOTIFY_WORKER_CONCURRENCY=8\n")

        assert DispatchSettings().worker_concurrency == 8

    @pytest.mark.parametrize(
        "overrides",
        [
            {"lease_seconds": 30, "delivery_timeout": 30},
            {"retry_base_delay": 10, "retry_max_delay": 5},
            {"queue_backend": "sqlalchemy"},
            {"max_attempts": 0},
        ],
    )
    def test_load_rejects_invalid_combinations(
        self, overrides: dict[str, object]
    ) -> None:
        with pytest.raises(ConfigurationError):
            DispatchSettings.load(**overrides)

    def test_direct_construction_raises_pydantic_error(self) -> None:
        with pytest.raises(PydanticValidationError):
            DispatchSettings(lease_seconds=1, delivery_timeout=2)

    def test_retry_policy(self) -> None:
        settings = DispatchSettings(
            max_attempts=4, retry_base_delay=2.0, retry_max_delay=20.0
        )

        policy = settings.retry_policy()

        assert policy.max_attempts == 4
        assert policy.delay_for_attempt(1) == 4.0
        assert policy.delay_for_attempt(10) == 20.0

    def test_to_dict_masks_password(self) -> None:
        settings = DispatchSettings(
            database_url="postgresql+asyncpg://app:s3cret@db:5432/notifications"
        )

        data = settings.to_dict()

        assert data["database_url"] == "postgresql+asyncpg://app:***@db:5432/notifications"
        assert "s3cret" not in str(data)
