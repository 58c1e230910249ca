"""NotificationRequest — validated inbound request from the presentation layer."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..primitives.exceptions import ValidationError
from .envelope import Channel, Priority


class NotificationRequest(BaseModel):
    """``{userId, channel, title, message, priority?}``.

    Accepts the camelCase wire names and the snake_case attribute names.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    user_id: str = Field(..., alias="userId", min_length=1)
    channel: Channel
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    priority: Priority = Priority.MEDIUM
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("channel", "priority", mode="before")
    @classmethod
    def _normalise_enum(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("priority", mode="before")
    @classmethod
    def _default_priority(cls, value: Any) -> Any:
        return Priority.MEDIUM if value is None else value

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> NotificationRequest:
        """Validate raw input, raising the package ``ValidationError``.

        Pydantic errors are flattened into ``{field: [messages]}``.
        """
        try:
            return cls.model_validate(dict(data))
        except PydanticValidationError as exc:
            errors: dict[str, list[str]] = {}
            for error in exc.errors():
                loc = ".".join(str(p) for p in error.get("loc", ())) or "__root__"
                msg = error.get("msg", "validation error")
                errors.setdefault(loc, []).append(msg)
            raise ValidationError(errors) from exc
