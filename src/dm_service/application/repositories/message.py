from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from dm_service.domain.entities.message import Message, NewMessage
from dm_service.domain.value_objects.enums import ActorKind


class MessageReader(Protocol):
    async def get_by_id(self, message_id: int) -> Message | None: ...

    async def get_many(self, message_ids: list[int]) -> list[Message]: ...

    async def list_before(
        self,
        conversation_key: str,
        *,
        before: Message | None = None,
        limit: int = 50,
    ) -> list[Message]:
        """Return up to ``limit`` messages older than ``before``, oldest first."""
        ...


class MessageWriter(Protocol):
    async def lock_conversation(self, conversation_key: str) -> None:
        """Serialise appends to one conversation until commit/rollback."""
        ...

    async def last_created_at(self, conversation_key: str) -> datetime | None: ...

    async def create_if_not_exists(self, message: NewMessage) -> tuple[Message, bool]:
        """Insert message. Return (message, created). If conflict on client_msg_id → return existing."""
        ...

    async def get_by_client_msg_id(
        self,
        conversation_key: str,
        sender_kind: ActorKind,
        sender_id: str,
        client_msg_id: UUID,
    ) -> Message | None: ...
