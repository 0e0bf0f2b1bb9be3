from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, text, tuple_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from dm_service.application.exceptions import TransientIOError
from dm_service.domain.entities.message import Message, NewMessage
from dm_service.domain.value_objects.enums import ActorKind
from dm_service.infrastructure.db.mappers import message as mapper
from dm_service.infrastructure.db.models.message import MessageModel

_LOCK_NOT_AVAILABLE = "55P03"


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, message_id: int) -> Message | None:
        result = await self._session.get(MessageModel, message_id)
        return mapper.model_to_entity(result) if result else None

    async def get_many(self, message_ids: list[int]) -> list[Message]:
        if not message_ids:
            return []
        stmt = select(MessageModel).where(MessageModel.id.in_(message_ids))
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def list_before(
        self,
        conversation_key: str,
        *,
        before: Message | None = None,
        limit: int = 50,
    ) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_key == conversation_key)
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
            .limit(limit)
        )
        if before is not None:
            stmt = stmt.where(
                tuple_(MessageModel.created_at, MessageModel.id)
                < tuple_(before.created_at, before.id)
            )
        result = await self._session.execute(stmt)
        newest_first = [mapper.model_to_entity(m) for m in result.scalars().all()]
        newest_first.reverse()
        return newest_first


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def lock_conversation(self, conversation_key: str) -> None:
        # Released automatically when the transaction ends.
        try:
            await self._session.execute(
                text("SELECT pg_advisory_xact_lock(hashtextextended(:key, 0))"),
                {"key": conversation_key},
            )
        except DBAPIError as exc:
            if getattr(exc.orig, "sqlstate", None) == _LOCK_NOT_AVAILABLE:
                raise TransientIOError(f"Conversation {conversation_key} is busy") from exc
            raise

    async def last_created_at(self, conversation_key: str) -> datetime | None:
        stmt = select(func.max(MessageModel.created_at)).where(
            MessageModel.conversation_key == conversation_key
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_if_not_exists(self, message: NewMessage) -> tuple[Message, bool]:
        """Insert message idempotently. Returns (message, created_flag)."""
        stmt = (
            pg_insert(MessageModel)
            .values(**mapper.new_message_values(message))
            .on_conflict_do_nothing(constraint="uq_message_idempotency")
            .returning(MessageModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()

        if row is not None:
            return mapper.model_to_entity(row), True

        # lost the race or a retry: return the stored row
        existing = await self.get_by_client_msg_id(
            message.conversation_key,
            message.sender_kind,
            message.sender_id,
            message.client_msg_id,
        )
        assert existing is not None
        return existing, False

    async def get_by_client_msg_id(
        self,
        conversation_key: str,
        sender_kind: ActorKind,
        sender_id: str,
        client_msg_id: UUID,
    ) -> Message | None:
        stmt = select(MessageModel).where(
            MessageModel.conversation_key == conversation_key,
            MessageModel.sender_kind == sender_kind.value,
            MessageModel.sender_id == sender_id,
            MessageModel.client_msg_id == client_msg_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None
