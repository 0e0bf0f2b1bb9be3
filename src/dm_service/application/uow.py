from __future__ import annotations

from typing import Protocol

from dm_service.application.repositories.conversation_index import (
    ConversationIndexReader,
    ConversationIndexWriter,
)
from dm_service.application.repositories.message import MessageReader, MessageWriter
from dm_service.application.repositories.outbox import OutboxWriter


class UnitOfWork(Protocol):
    messages: MessageReader
    messages_w: MessageWriter
    conversation_index: ConversationIndexReader
    conversation_index_w: ConversationIndexWriter
    outbox: OutboxWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...
