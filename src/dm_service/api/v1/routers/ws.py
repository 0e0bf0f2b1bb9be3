from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from dm_service.api.deps import get_identity_resolver, get_verifier
from dm_service.api.v1.schemas.message import MessageResponse, WsSendMessage
from dm_service.application.dto.message import SendMessageDTO
from dm_service.application.dto.principal import Principal
from dm_service.application.exceptions import AppError
from dm_service.config import settings
from dm_service.domain.value_objects.actor import ActorRef
from dm_service.infrastructure.db.uow import SqlAlchemyUoW
from dm_service.infrastructure.ws.manager import ConnectionManager
from dm_service.infrastructure.ws.protocol import PING, PONG, SEND, SENT, WsInbound, WsOutbound
from dm_service.services import message_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

AUTH_FAILED = 4001

manager = ConnectionManager()


def get_manager() -> ConnectionManager:
    return manager


async def _authenticate(token: str) -> Principal | None:
    try:
        return await get_verifier().verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws/messages")
async def ws_messages(
    websocket: WebSocket,
    token: str = Query(...),
) -> None:
    """Live delivery for one actor; text messages may also be sent over it.

    Files go through ``POST /api/v1/messages``.
    """
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=AUTH_FAILED, reason="Authentication failed")
        return

    pkey = principal.principal_key
    await manager.connect(websocket, pkey)
    heartbeat = asyncio.create_task(_heartbeat(websocket), name=f"ws-heartbeat-{pkey}")
    try:
        while True:
            await _handle_frame(websocket, principal, await websocket.receive_text())
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", pkey)
    finally:
        heartbeat.cancel()
        manager.disconnect(websocket, pkey)


async def _heartbeat(ws: WebSocket) -> None:
    try:
        while True:
            await asyncio.sleep(settings.WS_HEARTBEAT_SECONDS)
            await ws.send_text(WsOutbound(type=PONG).dump())
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("WS heartbeat stopped", exc_info=True)


async def _handle_frame(ws: WebSocket, principal: Principal, raw: str) -> None:
    try:
        frame = WsInbound.model_validate_json(raw)
    except PydanticValidationError:
        await ws.send_text(WsOutbound.error("invalid_payload").dump())
        return

    if frame.type == PING:
        await ws.send_text(WsOutbound(type=PONG).dump())
    elif frame.type == SEND:
        await ws.send_text((await _send(principal, frame.data)).dump())
    else:
        await ws.send_text(WsOutbound.error("unknown_type", type=frame.type).dump())


async def _send(principal: Principal, data: dict) -> WsOutbound:
    """Store a text message and build the ack for the sending socket.

    The counterpart (and the sender's other sockets) hear about it through the
    outbox fan-out, not from here.
    """
    try:
        req = WsSendMessage.model_validate(data)
        receiver = ActorRef.parse(req.receiver_id, req.receiver_kind)
    except (PydanticValidationError, ValueError) as exc:
        return WsOutbound.error("invalid_data", detail=str(exc))

    dto = SendMessageDTO(receiver=receiver, content=req.content, client_msg_id=req.client_msg_id)
    try:
        async with SqlAlchemyUoW.begin() as uow:
            msg, _created = await message_service.send_message(
                principal, dto, uow, get_identity_resolver(),
            )
    except AppError as exc:
        return WsOutbound.error("send_failed", kind=type(exc).__name__, detail=exc.detail)

    ack = MessageResponse.model_validate(msg, from_attributes=True)
    return WsOutbound(type=SENT, data=ack.model_dump(mode="json"))
