"""In-process registry of live sockets per actor."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import WebSocket

from dm_service.infrastructure.ws.protocol import CREATED, WsOutbound

logger = logging.getLogger(__name__)


def _actor_key(kind: str, actor_id: str) -> str:
    return f"{kind}:{actor_id}"


class ConnectionManager:
    """Tracks live WebSocket connections per actor key.

    Delivery is best effort: an actor with no live socket simply gets nothing,
    the message is still in the store. One actor may hold several sockets
    (tabs, devices); each gets its own copy.
    """

    def __init__(self, *, send_timeout: float = 5.0) -> None:
        self._connections: dict[str, set[WebSocket]] = {}
        self._send_timeout = send_timeout

    async def connect(self, ws: WebSocket, principal_key: str) -> None:
        await ws.accept()
        self._connections.setdefault(principal_key, set()).add(ws)
        logger.debug("WS connected: %s (actors online=%d)", principal_key, len(self._connections))

    def disconnect(self, ws: WebSocket, principal_key: str) -> None:
        conns = self._connections.get(principal_key)
        if conns:
            conns.discard(ws)
            if not conns:
                del self._connections[principal_key]
        logger.debug("WS disconnected: %s", principal_key)

    def is_connected(self, principal_key: str) -> bool:
        return bool(self._connections.get(principal_key))

    async def _send(self, ws: WebSocket, raw: str) -> bool:
        try:
            await asyncio.wait_for(ws.send_text(raw), self._send_timeout)
        except Exception:
            logger.debug("WS send failed", exc_info=True)
            return False
        return True

    async def send_to_principal(
        self,
        principal_key: str,
        event_type: str,
        data: dict[str, Any],
    ) -> int:
        """Send one frame to every socket of an actor. Returns sockets reached.

        Sockets that fail or time out are dropped from the registry.
        """
        sockets = list(self._connections.get(principal_key, ()))
        if not sockets:
            return 0
        raw = WsOutbound(type=event_type, data=data).dump()
        results = await asyncio.gather(*(self._send(ws, raw) for ws in sockets))
        for ws, ok in zip(sockets, results):
            if not ok:
                self.disconnect(ws, principal_key)
        return sum(results)

    async def deliver_message_created(self, data: dict[str, Any]) -> None:
        """Push a ``dm.message_created`` payload to both participants' sockets."""
        keys = {
            _actor_key(data["receiver_kind"], data["receiver_id"]),
            _actor_key(data["sender_kind"], data["sender_id"]),
        }
        for key in keys:
            delivered = await self.send_to_principal(key, CREATED, data)
            if delivered:
                logger.debug("Delivered message %s to %d sockets of %s",
                             data.get("message_id"), delivered, key)
