"""Client-side cache of the conversation list with local unread markers."""
from __future__ import annotations

from dm_service.client.api import MessagingApi
from dm_service.domain.entities.conversation import ConversationSummary
from dm_service.domain.entities.message import Message
from dm_service.domain.value_objects.actor import ActorRef


class Inbox:
    """Latest message per counterpart, most recent first.

    Unread markers are a local hint only; counts belong to the notification
    service.
    """

    def __init__(self, me: ActorRef) -> None:
        self._me = me
        self._entries: dict[ActorRef, ConversationSummary] = {}
        self._unread: set[ActorRef] = set()

    async def refresh(self, api: MessagingApi) -> list[ConversationSummary]:
        self.replace_all(await api.list_conversations())
        return self.conversations()

    def replace_all(self, summaries: list[ConversationSummary]) -> None:
        self._entries = {s.other: s for s in summaries}
        self._unread &= set(self._entries)

    def invalidate(self) -> None:
        self._entries.clear()
        self._unread.clear()

    def apply(self, msg: Message, *, unread: bool = False) -> ConversationSummary:
        """Fold a new message into the list; older messages never replace newer ones."""
        other = msg.other_party(self._me)
        current = self._entries.get(other)
        if current is None or msg.order_key > current.last_message.order_key:
            current = ConversationSummary(
                key=msg.conversation_key,
                other=other,
                last_message=msg,
                other_profile=current.other_profile if current else None,
            )
            self._entries[other] = current
        if unread:
            self._unread.add(other)
        return current

    def mark_seen(self, counterpart: ActorRef) -> None:
        self._unread.discard(counterpart)

    def is_unread(self, counterpart: ActorRef) -> bool:
        return counterpart in self._unread

    def conversations(self) -> list[ConversationSummary]:
        return sorted(
            self._entries.values(),
            key=lambda s: s.last_message.order_key,
            reverse=True,
        )
