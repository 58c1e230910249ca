"""Correlation IDs tying a delivery back to the request that caused it.

The dispatch service stamps the ambient correlation id on each envelope; the
worker rebinds it, with the envelope id as causation id, while delivering.
"""

from __future__ import annotations

import contextlib
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass(frozen=True)
class _Ids:
    correlation_id: str | None = None
    causation_id: str | None = None


_current: ContextVar[_Ids] = ContextVar("notification_correlation", default=_Ids())


def get_correlation_id() -> str | None:
    return _current.get().correlation_id


def get_causation_id() -> str | None:
    return _current.get().causation_id


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def ensure_correlation_id() -> str:
    """Return the ambient correlation id, or a fresh one outside any request."""
    return get_correlation_id() or generate_correlation_id()


@contextlib.contextmanager
def correlation_scope(
    correlation_id: str | None, causation_id: str | None = None
) -> Iterator[None]:
    """Bind both ids for the duration of the block."""
    token = _current.set(_Ids(correlation_id, causation_id))
    try:
        yield
    finally:
        _current.reset(token)
