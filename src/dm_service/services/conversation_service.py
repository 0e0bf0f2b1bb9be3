from __future__ import annotations

from dm_service.application.repositories.conversation_index import IndexEntry
from dm_service.application.uow import UnitOfWork
from dm_service.domain.entities.conversation import ConversationSummary
from dm_service.domain.entities.message import Message
from dm_service.domain.value_objects.actor import ActorRef


async def index_message(msg: Message, uow: UnitOfWork) -> None:
    """Point both participants' index rows at ``msg``.

    Appends are serialised per conversation, so overwriting is always correct.
    """
    for actor, counterpart in ((msg.sender, msg.receiver), (msg.receiver, msg.sender)):
        await uow.conversation_index_w.upsert(
            IndexEntry(
                actor=actor,
                counterpart=counterpart,
                conversation_key=msg.conversation_key,
                last_message_id=msg.id,
            )
        )


async def list_conversations_for(
    actor: ActorRef,
    uow: UnitOfWork,
) -> list[ConversationSummary]:
    """Latest message per counterpart, most recent conversation first."""
    entries = await uow.conversation_index.list_for_actor(actor)
    if not entries:
        return []

    messages = await uow.messages.get_many([e.last_message_id for e in entries])
    by_id = {m.id: m for m in messages}

    summaries = [
        ConversationSummary(
            key=e.conversation_key,
            other=e.counterpart,
            last_message=by_id[e.last_message_id],
        )
        for e in entries
        if e.last_message_id in by_id
    ]
    summaries.sort(key=lambda s: s.last_message.order_key, reverse=True)
    return summaries
