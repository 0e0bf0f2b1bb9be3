"""Frames exchanged over ``/ws/messages``.

Client -> server: ``ping``, ``message.send``.
Server -> client: ``pong``, ``message.sent`` (ack to the sending socket),
``message.created`` (fan-out to both participants), ``error``.
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

PING = "ping"
SEND = "message.send"

PONG = "pong"
SENT = "message.sent"
CREATED = "message.created"
ERROR = "error"


class WsInbound(BaseModel):
    type: str
    data: dict[str, Any] = Field(default_factory=dict)


class WsOutbound(BaseModel):
    type: str
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def error(cls, code: str, **extra: Any) -> WsOutbound:
        return cls(type=ERROR, data={"code": code, **extra})

    def dump(self) -> str:
        return self.model_dump_json()
