from __future__ import annotations

from enum import StrEnum


class ActorKind(StrEnum):
    USER = "User"
    COMPANY = "Company"


class AttachmentKind(StrEnum):
    IMAGE = "image"
    VIDEO = "video"
    FILE = "file"


class OutboxStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"
    DEAD = "dead"
