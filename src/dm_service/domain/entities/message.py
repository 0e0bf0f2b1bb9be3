from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from dm_service.domain.value_objects.actor import ActorRef
from dm_service.domain.value_objects.enums import ActorKind, AttachmentKind


@dataclass(frozen=True, slots=True)
class Attachment:
    kind: AttachmentKind
    url: str
    original_name: str


@dataclass(frozen=True, slots=True)
class NewMessage:
    """A message accepted by the store but not yet persisted."""

    conversation_key: str
    sender_id: str
    sender_kind: ActorKind
    receiver_id: str
    receiver_kind: ActorKind
    content: str
    attachments: tuple[Attachment, ...]
    client_msg_id: UUID
    created_at: datetime


@dataclass(frozen=True, slots=True)
class Message:
    id: int
    conversation_key: str
    sender_id: str
    sender_kind: ActorKind
    receiver_id: str
    receiver_kind: ActorKind
    content: str
    attachments: tuple[Attachment, ...]
    client_msg_id: UUID
    created_at: datetime

    @property
    def sender(self) -> ActorRef:
        return ActorRef(self.sender_id, self.sender_kind)

    @property
    def receiver(self) -> ActorRef:
        return ActorRef(self.receiver_id, self.receiver_kind)

    @property
    def order_key(self) -> tuple[datetime, int]:
        return (self.created_at, self.id)

    def other_party(self, actor: ActorRef) -> ActorRef:
        return self.receiver if self.sender == actor else self.sender
