from __future__ import annotations

from dataclasses import dataclass

from dm_service.domain.entities.message import Message
from dm_service.domain.value_objects.actor import ActorProfile, ActorRef


@dataclass(frozen=True, slots=True)
class ConversationSummary:
    """Latest message between an actor and one counterpart.

    Derived from the message log on every read; never stored on its own.
    """

    key: str
    other: ActorRef
    last_message: Message
    other_profile: ActorProfile | None = None
