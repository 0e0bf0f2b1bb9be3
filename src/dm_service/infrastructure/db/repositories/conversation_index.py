from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from dm_service.application.repositories.conversation_index import IndexEntry
from dm_service.domain.value_objects.actor import ActorRef
from dm_service.domain.value_objects.enums import ActorKind
from dm_service.infrastructure.db.models.conversation_index import ConversationIndexModel


class ConversationIndexReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_actor(self, actor: ActorRef) -> list[IndexEntry]:
        stmt = select(ConversationIndexModel).where(
            ConversationIndexModel.actor_kind == actor.kind.value,
            ConversationIndexModel.actor_id == actor.id,
        )
        result = await self._session.execute(stmt)
        return [
            IndexEntry(
                actor=actor,
                counterpart=ActorRef(row.counterpart_id, ActorKind(row.counterpart_kind)),
                conversation_key=row.conversation_key,
                last_message_id=row.last_message_id,
            )
            for row in result.scalars().all()
        ]


class ConversationIndexWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert(self, entry: IndexEntry) -> None:
        stmt = (
            pg_insert(ConversationIndexModel)
            .values(
                actor_id=entry.actor.id,
                actor_kind=entry.actor.kind.value,
                counterpart_id=entry.counterpart.id,
                counterpart_kind=entry.counterpart.kind.value,
                conversation_key=entry.conversation_key,
                last_message_id=entry.last_message_id,
            )
            .on_conflict_do_update(
                constraint="uq_conversation_index_pair",
                set_={"last_message_id": entry.last_message_id, "updated_at": func.now()},
            )
        )
        await self._session.execute(stmt)
