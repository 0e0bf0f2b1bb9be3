from __future__ import annotations

from typing import Any

from dm_service.domain.entities.message import Attachment, Message, NewMessage
from dm_service.domain.value_objects.enums import ActorKind, AttachmentKind
from dm_service.infrastructure.db.models.message import MessageModel


def attachments_to_json(attachments: tuple[Attachment, ...]) -> list[dict[str, Any]]:
    return [
        {"kind": a.kind.value, "url": a.url, "original_name": a.original_name}
        for a in attachments
    ]


def attachments_from_json(raw: list[dict[str, Any]] | None) -> tuple[Attachment, ...]:
    return tuple(
        Attachment(
            kind=AttachmentKind(item["kind"]),
            url=item["url"],
            original_name=item.get("original_name", ""),
        )
        for item in raw or []
    )


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        conversation_key=model.conversation_key,
        sender_id=model.sender_id,
        sender_kind=ActorKind(model.sender_kind),
        receiver_id=model.receiver_id,
        receiver_kind=ActorKind(model.receiver_kind),
        content=model.content,
        attachments=attachments_from_json(model.attachments),
        client_msg_id=model.client_msg_id,
        created_at=model.created_at,
    )


def new_message_values(entity: NewMessage) -> dict[str, Any]:
    """Column values for an INSERT; ``id`` is left to the identity column."""
    return {
        "conversation_key": entity.conversation_key,
        "sender_id": entity.sender_id,
        "sender_kind": entity.sender_kind.value,
        "receiver_id": entity.receiver_id,
        "receiver_kind": entity.receiver_kind.value,
        "content": entity.content,
        "attachments": attachments_to_json(entity.attachments),
        "client_msg_id": entity.client_msg_id,
        "created_at": entity.created_at,
    }
