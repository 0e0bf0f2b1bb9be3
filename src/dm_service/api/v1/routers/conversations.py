from __future__ import annotations

from fastapi import APIRouter

from dm_service.api.deps import CurrentPrincipal, IdentityDep, UoWDep
from dm_service.api.v1.schemas.conversation import ConversationResponse
from dm_service.services import conversation_service, profile_service

router = APIRouter(prefix="/api/v1/conversations", tags=["conversations"])


@router.get("", response_model=list[ConversationResponse])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
    identity: IdentityDep,
) -> list[ConversationResponse]:
    convs = await conversation_service.list_conversations_for(principal.actor, uow)
    if not convs:
        return []
    # last_message may be ours, so our own profile is needed too
    profiles = await profile_service.resolve_profiles(
        [principal.actor, *(c.other for c in convs)], identity,
    )
    return [ConversationResponse.from_summary(c, profiles) for c in convs]
