"""HTTP client for the messaging REST API."""
from __future__ import annotations

import logging
from typing import Any, Protocol, Sequence
from uuid import UUID

import httpx

from dm_service.api.v1.schemas.conversation import ConversationResponse
from dm_service.api.v1.schemas.message import MessageResponse
from dm_service.application.dto.message import UploadedFileDTO
from dm_service.application.exceptions import TransientIOError, error_for_status
from dm_service.client.config import ClientConfig
from dm_service.domain.entities.conversation import ConversationSummary
from dm_service.domain.entities.message import Attachment, Message
from dm_service.domain.value_objects.actor import ActorProfile, ActorRef

logger = logging.getLogger(__name__)


class MessagingApi(Protocol):
    async def send_message(
        self,
        receiver: ActorRef,
        content: str,
        files: Sequence[UploadedFileDTO],
        client_msg_id: UUID,
    ) -> Message: ...

    async def history(
        self,
        counterpart: ActorRef,
        *,
        before: int | None = None,
        limit: int = 50,
    ) -> list[Message]: ...

    async def list_conversations(self) -> list[ConversationSummary]: ...


def message_from_response(resp: MessageResponse) -> Message:
    return Message(
        id=resp.id,
        conversation_key=resp.conversation_key,
        sender_id=resp.sender_id,
        sender_kind=resp.sender_kind,
        receiver_id=resp.receiver_id,
        receiver_kind=resp.receiver_kind,
        content=resp.content,
        attachments=tuple(
            Attachment(kind=a.kind, url=a.url, original_name=a.original_name)
            for a in resp.attachments
        ),
        client_msg_id=resp.client_msg_id,
        created_at=resp.created_at,
    )


def _detail(resp: httpx.Response) -> str:
    try:
        body: Any = resp.json()
    except ValueError:
        return resp.text
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return str(body)


def raise_for_status(resp: httpx.Response) -> None:
    """Map an error response onto the service's exception taxonomy."""
    if resp.status_code < 400:
        return
    detail = _detail(resp) or f"HTTP {resp.status_code}"
    raise error_for_status(resp.status_code)(detail)


class HttpMessagingApi:
    """Implements MessagingApi on top of an authenticated httpx.AsyncClient."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_config(cls, config: ClientConfig) -> HttpMessagingApi:
        return cls(
            httpx.AsyncClient(
                base_url=config.base_url,
                headers={"Authorization": f"Bearer {config.token}"},
                timeout=config.timeout_seconds,
            )
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise TransientIOError(str(exc) or type(exc).__name__) from exc
        raise_for_status(resp)
        return resp

    async def send_message(
        self,
        receiver: ActorRef,
        content: str,
        files: Sequence[UploadedFileDTO],
        client_msg_id: UUID,
    ) -> Message:
        data = {
            "receiver_id": receiver.id,
            "receiver_kind": receiver.kind.value,
            "content": content,
            "client_msg_id": str(client_msg_id),
        }
        upload = [("files", (f.filename, f.data, f.content_type)) for f in files]
        resp = await self._request("POST", "/api/v1/messages", data=data, files=upload or None)
        return message_from_response(MessageResponse.model_validate(resp.json()))

    async def history(
        self,
        counterpart: ActorRef,
        *,
        before: int | None = None,
        limit: int = 50,
    ) -> list[Message]:
        params: dict[str, Any] = {"limit": limit}
        if before is not None:
            params["before"] = before
        resp = await self._request(
            "GET",
            f"/api/v1/messages/{counterpart.kind.value}/{counterpart.id}",
            params=params,
        )
        return [message_from_response(MessageResponse.model_validate(m)) for m in resp.json()]

    async def list_conversations(self) -> list[ConversationSummary]:
        resp = await self._request("GET", "/api/v1/conversations")
        summaries = []
        for raw in resp.json():
            conv = ConversationResponse.model_validate(raw)
            other = ActorRef(conv.other.id, conv.other.kind)
            summaries.append(
                ConversationSummary(
                    key=conv.key,
                    other=other,
                    last_message=message_from_response(conv.last_message),
                    other_profile=ActorProfile(
                        other, conv.other.display_name, conv.other.avatar_url,
                    ),
                )
            )
        return summaries
