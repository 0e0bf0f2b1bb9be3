from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from dm_service.domain.entities.message import Message
from dm_service.domain.value_objects.actor import ActorProfile, ActorRef
from dm_service.domain.value_objects.enums import ActorKind, AttachmentKind


class ActorResponse(BaseModel):
    id: str
    kind: ActorKind
    display_name: str | None = None
    avatar_url: str | None = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_profile(cls, profile: ActorProfile) -> ActorResponse:
        return cls(
            id=profile.actor.id,
            kind=profile.actor.kind,
            display_name=profile.display_name,
            avatar_url=profile.avatar_url,
        )


class AttachmentResponse(BaseModel):
    kind: AttachmentKind
    url: str
    original_name: str

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    id: int
    conversation_key: str
    sender_id: str
    sender_kind: ActorKind
    receiver_id: str
    receiver_kind: ActorKind
    content: str
    attachments: list[AttachmentResponse]
    client_msg_id: UUID
    created_at: datetime
    sender: ActorResponse | None = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_message(
        cls,
        msg: Message,
        profiles: Mapping[ActorRef, ActorProfile] | None = None,
    ) -> MessageResponse:
        resp = cls.model_validate(msg, from_attributes=True)
        profile = (profiles or {}).get(msg.sender)
        if profile is not None:
            resp.sender = ActorResponse.from_profile(profile)
        return resp


class WsSendMessage(BaseModel):
    """``data`` of a ``message.send`` WS frame; text only, files go through REST."""

    receiver_id: str
    receiver_kind: ActorKind
    content: str
    client_msg_id: UUID | None = None
