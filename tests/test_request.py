"""Tests for inbound request validation."""

from __future__ import annotations

import pytest

from notification_dispatch.domain import Channel, NotificationRequest, Priority
from notification_dispatch.primitives.exceptions import ValidationError


def _payload(**overrides: object) -> dict[str, object]:
    data: dict[str, object] = {
        "userId": "user-42",
        "channel": "EMAIL",
        "title": "Order shipped",
        "message": "Your order is on its way",
        "priority": "HIGH",
    }
    data.update(overrides)
    return data


class TestNotificationRequest:
    def test_parses_wire_shape(self) -> None:
        request = NotificationRequest.parse(_payload())

        assert request.user_id == "user-42"
        assert request.channel is Channel.EMAIL
        assert request.priority is Priority.HIGH
        assert request.message == "Your order is on its way"

    def test_accepts_snake_case_names(self) -> None:
        request = NotificationRequest.parse(
            {"user_id": "u", "channel": "SMS", "title": "t", "message": "m"}
        )

        assert request.user_id == "u"
        assert request.channel is Channel.SMS

    def test_channel_and_priority_are_case_insensitive(self) -> None:
        request = NotificationRequest.parse(_payload(channel="in_app", priority="urgent"))

        assert request.channel is Channel.IN_APP
        assert request.priority is Priority.URGENT

    @pytest.mark.parametrize("priority", [None, "__missing__"])
    def test_priority_defaults_to_medium(self, priority: object) -> None:
        payload = _payload(priority=priority)
        if priority == "__missing__":
            del payload["priority"]

        assert NotificationRequest.parse(payload).priority is Priority.MEDIUM

    def test_unknown_channel_is_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            NotificationRequest.parse(_payload(channel="FAX"))

        assert "channel" in exc_info.value.errors

    def test_blank_fields_are_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            NotificationRequest.parse(_payload(message="   "))

        assert "message" in exc_info.value.errors

    def test_missing_user_is_rejected(self) -> None:
        payload = _payload()
        del payload["userId"]

        with pytest.raises(ValidationError) as exc_info:
            NotificationRequest.parse(payload)

        assert any("user" in key.lower() for key in exc_info.value.errors)
