from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from dm_service.domain.entities.message import Message

EVENT_TYPE = "dm.message_created"


@dataclass(frozen=True, slots=True)
class MessageCreated:
    message: Message

    def to_payload(self) -> dict[str, Any]:
        msg = self.message
        return {
            "message_id": msg.id,
            "conversation_key": msg.conversation_key,
            "sender_id": msg.sender_id,
            "sender_kind": msg.sender_kind.value,
            "receiver_id": msg.receiver_id,
            "receiver_kind": msg.receiver_kind.value,
            "content": msg.content,
            "attachments": [
                {"kind": a.kind.value, "url": a.url, "original_name": a.original_name}
                for a in msg.attachments
            ],
            "client_msg_id": str(msg.client_msg_id),
            "created_at": msg.created_at.isoformat(),
        }
