"""Outbox worker: drains committed message events to live sockets and to the notification stream.

Run several copies if needed; rows are claimed with SKIP LOCKED.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import redis.asyncio as aioredis

from dm_service.application.ports.bus import EventPublisher
from dm_service.application.repositories.outbox import OutboxRecord
from dm_service.application.uow import UnitOfWork
from dm_service.config import settings
from dm_service.infrastructure.bus.redis_pubsub import RedisPubSubPublisher
from dm_service.infrastructure.bus.redis_streams import RedisStreamPublisher
from dm_service.infrastructure.db.session import dispose_engine
from dm_service.infrastructure.db.uow import SqlAlchemyUoW
from dm_service.logging_setup import configure_logging

logger = logging.getLogger(__name__)

BASE_DELAY_SECONDS = 5
MAX_DELAY_SECONDS = 300


def calc_backoff(attempts: int, *, now: datetime | None = None) -> datetime:
    delay = min(BASE_DELAY_SECONDS * (2 ** attempts), MAX_DELAY_SECONDS)
    return (now or datetime.now(timezone.utc)) + timedelta(seconds=delay)


async def _publish(
    record: OutboxRecord,
    fanout: EventPublisher,
    notifications: EventPublisher,
) -> None:
    await fanout.publish(settings.REDIS_PUBSUB_CHANNEL, record.event_type, record.payload)
    await notifications.publish(settings.NOTIFICATIONS_STREAM, record.event_type, record.payload)


async def process_batch(
    uow: UnitOfWork,
    fanout: EventPublisher,
    notifications: EventPublisher,
) -> int:
    """Publish one batch of due records. Returns the number sent.

    A record that fails on its last allowed attempt is dead-lettered; the
    message itself is already stored, so recipients still see it in history.
    """
    released = await uow.outbox.release_stale(
        timedelta(seconds=settings.OUTBOX_CLAIM_TIMEOUT_SECONDS),
    )
    if released:
        logger.warning("Re-queued %d outbox records abandoned mid-publish", released)

    batch = await uow.outbox.claim_batch(
        settings.OUTBOX_BATCH_SIZE, settings.OUTBOX_MAX_ATTEMPTS,
    )
    if not batch:
        if released:
            await uow.commit()
        return 0

    sent_ids: list[int] = []
    for record in batch:
        try:
            await _publish(record, fanout, notifications)
        except Exception:
            logger.exception("Failed to publish outbox record %d (%s)", record.id, record.aggregate_key)
            if record.attempts + 1 >= settings.OUTBOX_MAX_ATTEMPTS:
                logger.warning("Outbox record %d exceeded max attempts, dead-lettering", record.id)
                await uow.outbox.mark_dead(record.id)
            else:
                await uow.outbox.mark_failed(record.id, calc_backoff(record.attempts))
        else:
            sent_ids.append(record.id)

    await uow.outbox.mark_sent(sent_ids)
    await uow.commit()
    if sent_ids:
        logger.info("Published %d outbox records", len(sent_ids))
    return len(sent_ids)


async def run_outbox_worker() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    fanout = RedisPubSubPublisher(redis)
    notifications = RedisStreamPublisher(redis, maxlen=settings.NOTIFICATIONS_STREAM_MAXLEN)

    logger.info(
        "Outbox worker started (poll=%.1fs, batch=%d, max_attempts=%d)",
        settings.OUTBOX_POLL_INTERVAL,
        settings.OUTBOX_BATCH_SIZE,
        settings.OUTBOX_MAX_ATTEMPTS,
    )

    try:
        while True:
            sent = 0
            try:
                async with SqlAlchemyUoW.begin() as uow:
                    sent = await process_batch(uow, fanout, notifications)
            except Exception:
                logger.exception("Outbox worker loop error")
            # a full batch means there is probably more waiting
            if sent < settings.OUTBOX_BATCH_SIZE:
                await asyncio.sleep(settings.OUTBOX_POLL_INTERVAL)
    finally:
        await redis.aclose()
        await dispose_engine()


def main() -> None:
    configure_logging()
    asyncio.run(run_outbox_worker())


if __name__ == "__main__":
    main()
