"""Redis Pub/Sub fan-out between API processes."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from dm_service.infrastructure.bus.serializer import deserialize_event, serialize_event

logger = logging.getLogger(__name__)

EventHandler = Callable[[dict[str, Any]], Awaitable[None]]


class RedisPubSubPublisher:
    """Implements application.ports.bus.EventPublisher."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def publish(self, channel: str, event_type: str, payload: dict[str, Any]) -> None:
        receivers = await self._redis.publish(channel, serialize_event(event_type, payload))
        logger.debug("Published %s to %s (%d API processes)", event_type, channel, receivers)


class RedisPubSubSubscriber:
    """Listens on one channel and hands each event to the handler registered for its type.

    The connection is re-established with capped backoff after Redis drops it.
    Events published in the gap are not replayed; clients catch up from history.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        *,
        reconnect_base: float = 0.5,
        reconnect_max: float = 30.0,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._reconnect_base = reconnect_base
        self._reconnect_max = reconnect_max
        self._handlers: dict[str, EventHandler] = {}
        self._task: asyncio.Task[None] | None = None

    def on(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type] = handler

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="redis-pubsub-subscriber")
        logger.info("Redis Pub/Sub subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Redis Pub/Sub subscriber stopped")

    async def _run(self) -> None:
        failures = 0
        while True:
            try:
                async with self._redis.pubsub() as pubsub:
                    await pubsub.subscribe(self._channel)
                    if failures:
                        logger.info("Re-subscribed to %s after %d failures", self._channel, failures)
                    failures = 0
                    async for message in pubsub.listen():
                        if message["type"] == "message":
                            await self.dispatch(message["data"])
            except (RedisConnectionError, RedisTimeoutError, OSError) as exc:
                delay = min(self._reconnect_base * (2 ** failures), self._reconnect_max)
                failures += 1
                logger.warning("Pub/Sub connection lost (%s), retrying in %.1fs", exc, delay)
                await asyncio.sleep(delay)

    async def dispatch(self, raw: str | bytes) -> bool:
        """Route one raw envelope. Returns False if nothing handled it."""
        try:
            event_type, data = deserialize_event(raw)
        except ValueError:
            logger.warning("Dropping undecodable pubsub message")
            return False

        handler = self._handlers.get(event_type)
        if handler is None:
            logger.debug("No handler for pubsub event %s", event_type)
            return False
        try:
            await handler(data)
        except Exception:
            logger.exception("Error handling pubsub event %s", event_type)
            return False
        return True
