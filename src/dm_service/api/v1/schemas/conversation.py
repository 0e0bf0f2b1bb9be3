from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel

from dm_service.api.v1.schemas.message import ActorResponse, MessageResponse
from dm_service.domain.entities.conversation import ConversationSummary
from dm_service.domain.value_objects.actor import ActorProfile, ActorRef


class ConversationResponse(BaseModel):
    key: str
    other: ActorResponse
    last_message: MessageResponse

    @classmethod
    def from_summary(
        cls,
        summary: ConversationSummary,
        profiles: Mapping[ActorRef, ActorProfile],
    ) -> ConversationResponse:
        other = profiles.get(summary.other) or ActorProfile(summary.other)
        return cls(
            key=summary.key,
            other=ActorResponse.from_profile(other),
            last_message=MessageResponse.from_message(summary.last_message, profiles),
        )
