from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dm_service.infrastructure.db.repositories.conversation_index import (
    ConversationIndexReaderRepo,
    ConversationIndexWriterRepo,
)
from dm_service.infrastructure.db.repositories.message import (
    MessageReaderRepo,
    MessageWriterRepo,
)
from dm_service.infrastructure.db.repositories.outbox import OutboxWriterRepo
from dm_service.infrastructure.db.session import AsyncSessionLocal


class SqlAlchemyUoW:
    """Unit of work over one AsyncSession.

    The conversation lock taken by ``messages_w.lock_conversation`` lives as
    long as the transaction: ``commit`` and ``rollback`` both release it.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.messages = MessageReaderRepo(session)
        self.messages_w = MessageWriterRepo(session)
        self.conversation_index = ConversationIndexReaderRepo(session)
        self.conversation_index_w = ConversationIndexWriterRepo(session)
        self.outbox = OutboxWriterRepo(session)

    @classmethod
    @asynccontextmanager
    async def begin(
        cls,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    ) -> AsyncIterator[SqlAlchemyUoW]:
        """Open a session for one unit of work; uncommitted work is rolled back on exit."""
        async with session_factory() as session:
            uow = cls(session)
            try:
                yield uow
            finally:
                if session.in_transaction():
                    await session.rollback()

    async def flush(self) -> None:
        await self._session.flush()

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()
