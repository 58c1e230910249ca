"""Tests for DeadLetterAdminService."""

from __future__ import annotations

from datetime import timedelta

import pytest

from notification_dispatch.adapters.memory import InMemoryNotificationQueue
from notification_dispatch.admin_service import DeadLetterAdminService, QueueStatistics
from notification_dispatch.domain import EnvelopeStatus

from .conftest import FakeClock, make_envelope


@pytest.fixture
def admin(queue: InMemoryNotificationQueue) -> DeadLetterAdminService:
    return DeadLetterAdminService(queue)


async def _dead_letter(queue: InMemoryNotificationQueue, reason: str) -> str:
    await queue.enqueue(make_envelope())
    claimed = await queue.dequeue()
    assert claimed is not None
    await queue.fail(claimed.id, retryable=False, reason=reason)
    return claimed.id


class TestDeadLetterAdminService:
    @pytest.mark.asyncio
    async def test_list_dead_letters_newest_first(
        self,
        admin: DeadLetterAdminService,
        queue: InMemoryNotificationQueue,
        clock: FakeClock,
    ) -> None:
        older = await _dead_letter(queue, "bounced")
        clock.advance(5)
        newer = await _dead_letter(queue, "blocked")

        listed = await admin.list_dead_letters()
        paged = await admin.list_dead_letters(limit=1, offset=1)

        assert [e.id for e in listed] == [newer, older]
        assert [e.id for e in paged] == [older]

    @pytest.mark.asyncio
    async def test_list_dead_letters_validates_paging(
        self, admin: DeadLetterAdminService
    ) -> None:
        with pytest.raises(ValueError):
            await admin.list_dead_letters(limit=0)
        with pytest.raises(ValueError):
            await admin.list_dead_letters(offset=-1)

    @pytest.mark.asyncio
    async def test_statistics(
        self, admin: DeadLetterAdminService, queue: InMemoryNotificationQueue
    ) -> None:
        await _dead_letter(queue, "bounced")
        await queue.enqueue(make_envelope())
        await queue.enqueue(make_envelope())

        stats = await admin.get_statistics()

        assert isinstance(stats, QueueStatistics)
        assert stats.total == 3
        assert stats.get(EnvelopeStatus.PENDING) == 2
        assert stats.get(EnvelopeStatus.IN_FLIGHT) == 0
        assert stats.get("FAILED_TERMINAL") == 1
        assert stats.get(EnvelopeStatus.DELIVERED) == 0

    @pytest.mark.asyncio
    async def test_purge_terminal_respects_cutoff_and_statuses(
        self,
        admin: DeadLetterAdminService,
        queue: InMemoryNotificationQueue,
        clock: FakeClock,
    ) -> None:
        dead = await _dead_letter(queue, "bounced")
        pending = await queue.enqueue(make_envelope())
        cancelled = await queue.enqueue(make_envelope())
        await queue.cancel(cancelled.id)
        cutoff = clock.now + timedelta(seconds=1)

        assert await admin.purge_terminal(before=clock.now - timedelta(hours=1)) == 0
        assert (
            await admin.purge_terminal(
                before=cutoff, statuses=[EnvelopeStatus.CANCELLED]
            )
            == 1
        )
        assert await admin.purge_terminal(before=cutoff.replace(tzinfo=None)) == 1

        assert await queue.get(dead) is None
        assert await queue.get(cancelled.id) is None
        assert await queue.get(pending.id) is not None
