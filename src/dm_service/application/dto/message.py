from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from dm_service.domain.entities.message import Attachment
from dm_service.domain.value_objects.actor import ActorRef


@dataclass(frozen=True, slots=True)
class SendMessageDTO:
    receiver: ActorRef
    content: str = ""
    attachments: tuple[Attachment, ...] = ()
    client_msg_id: UUID | None = None


@dataclass(frozen=True, slots=True)
class UploadedFileDTO:
    """Raw upload handed from the transport to attachment intake."""

    filename: str
    content_type: str
    data: bytes = field(repr=False)
