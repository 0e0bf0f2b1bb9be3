"""Redis Streams producer: hands message events to the notification service."""
from __future__ import annotations

import logging
from typing import Any

import redis.asyncio as aioredis

from dm_service.infrastructure.bus.serializer import serialize_event

logger = logging.getLogger(__name__)


class RedisStreamPublisher:
    """Implements application.ports.bus.EventPublisher with XADD.

    ``channel`` is the stream name. Each entry carries ``event_type`` and the
    JSON envelope in ``data`` so consumers can filter without decoding.
    """

    def __init__(self, redis: aioredis.Redis, *, maxlen: int | None = None) -> None:
        self._redis = redis
        self._maxlen = maxlen

    async def publish(self, channel: str, event_type: str, payload: dict[str, Any]) -> None:
        entry_id = await self._redis.xadd(
            channel,
            {"event_type": event_type, "data": serialize_event(event_type, payload)},
            maxlen=self._maxlen,
            approximate=True,
        )
        logger.debug("Appended %s to stream %s as %s", event_type, channel, entry_id)
