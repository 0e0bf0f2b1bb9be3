from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from dm_service.domain.value_objects.actor import ActorRef


@dataclass(frozen=True, slots=True)
class IndexEntry:
    actor: ActorRef
    counterpart: ActorRef
    conversation_key: str
    last_message_id: int


class ConversationIndexReader(Protocol):
    async def list_for_actor(self, actor: ActorRef) -> list[IndexEntry]: ...


class ConversationIndexWriter(Protocol):
    async def upsert(self, entry: IndexEntry) -> None:
        """Point the (actor, counterpart) row at ``entry.last_message_id`` unconditionally."""
        ...
