from __future__ import annotations

from datetime import timedelta

import pytest

from dm_service.config import settings
from dm_service.workers import outbox_worker
from tests.conftest import T0, FakeUoW


class RecordingPublisher:
    def __init__(self, fail_on: set[int] | None = None) -> None:
        self.published: list[tuple[str, str, dict]] = []
        self._fail_on = fail_on or set()

    async def publish(self, channel, event_type, payload):
        if payload.get("message_id") in self._fail_on:
            raise ConnectionError("redis down")
        self.published.append((channel, event_type, payload))


async def _seed(uow: FakeUoW, *message_ids: int) -> None:
    for mid in message_ids:
        await uow.outbox.add("dm.message_created", {"message_id": mid}, aggregate_key="k")


def test_calc_backoff_is_exponential_and_capped():
    assert outbox_worker.calc_backoff(0, now=T0) == T0 + timedelta(seconds=5)
    assert outbox_worker.calc_backoff(2, now=T0) == T0 + timedelta(seconds=20)
    assert outbox_worker.calc_backoff(10, now=T0) == T0 + timedelta(seconds=300)


@pytest.mark.asyncio
async def test_process_batch_empty():
    uow = FakeUoW()
    assert await outbox_worker.process_batch(uow, RecordingPublisher(), RecordingPublisher()) == 0
    assert uow._committed is False


@pytest.mark.asyncio
async def test_process_batch_commits_released_claims_even_when_idle():
    uow = FakeUoW()
    uow.outbox.stale = 2

    assert await outbox_worker.process_batch(uow, RecordingPublisher(), RecordingPublisher()) == 0
    assert uow._committed is True


@pytest.mark.asyncio
async def test_process_batch_publishes_to_both_channels():
    uow = FakeUoW()
    await _seed(uow, 1, 2)
    fanout, notifications = RecordingPublisher(), RecordingPublisher()

    sent = await outbox_worker.process_batch(uow, fanout, notifications)

    assert sent == 2
    assert [p[0] for p in fanout.published] == [settings.REDIS_PUBSUB_CHANNEL] * 2
    assert [p[0] for p in notifications.published] == [settings.NOTIFICATIONS_STREAM] * 2
    assert [p[2]["message_id"] for p in fanout.published] == [1, 2]
    assert uow.outbox._sent == [1, 2]
    assert uow._committed is True
    assert await outbox_worker.process_batch(uow, fanout, notifications) == 0


@pytest.mark.asyncio
async def test_process_batch_schedules_retry_on_failure():
    uow = FakeUoW()
    await _seed(uow, 1, 2)

    sent = await outbox_worker.process_batch(uow, RecordingPublisher(fail_on={2}), RecordingPublisher())

    assert sent == 1
    assert uow.outbox._sent == [1]
    assert [record_id for record_id, _ in uow.outbox._failed] == [2]
    assert uow.outbox._dead == []


@pytest.mark.asyncio
async def test_process_batch_dead_letters_after_max_attempts():
    uow = FakeUoW()
    await _seed(uow, 7)
    failing = RecordingPublisher(fail_on={7})

    for _ in range(settings.OUTBOX_MAX_ATTEMPTS):
        await outbox_worker.process_batch(uow, failing, RecordingPublisher())

    assert len(uow.outbox._failed) == settings.OUTBOX_MAX_ATTEMPTS - 1
    assert uow.outbox._dead == [7]
    assert await outbox_worker.process_batch(uow, failing, RecordingPublisher()) == 0
