from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, File, Form, Query, UploadFile

from dm_service.api.deps import (
    CurrentPrincipal,
    IdentityDep,
    StorageDep,
    UoWDep,
    parse_actor,
)
from dm_service.api.v1.schemas.message import MessageResponse
from dm_service.application.dto.message import SendMessageDTO, UploadedFileDTO
from dm_service.config import settings
from dm_service.domain.value_objects.enums import ActorKind
from dm_service.services import attachment_service, message_service, profile_service

router = APIRouter(prefix="/api/v1/messages", tags=["messages"])


@router.post("", response_model=MessageResponse, status_code=201)
async def send_message(
    principal: CurrentPrincipal,
    uow: UoWDep,
    identity: IdentityDep,
    storage: StorageDep,
    receiver_id: str = Form(...),
    receiver_kind: ActorKind = Form(...),
    content: str = Form(""),
    client_msg_id: UUID | None = Form(None),
    files: list[UploadFile] | None = File(None),
) -> MessageResponse:
    receiver = parse_actor(receiver_id, receiver_kind)
    uploads = [
        UploadedFileDTO(
            filename=f.filename or "upload",
            content_type=f.content_type or "application/octet-stream",
            data=await f.read(),
        )
        for f in files or []
    ]
    if client_msg_id is not None:
        replay = await message_service.find_replay(
            principal.actor,
            receiver,
            client_msg_id,
            content,
            attachment_service.upload_signature(uploads),
            uow,
        )
        if replay is not None:
            return MessageResponse.model_validate(replay, from_attributes=True)

    attachments = await attachment_service.store_uploads(
        uploads,
        storage,
        max_files=settings.UPLOAD_MAX_FILES,
        max_bytes=settings.UPLOAD_MAX_BYTES,
        allowed_types=settings.UPLOAD_ALLOWED_TYPES,
    )
    msg, _created = await message_service.send_message(
        principal,
        SendMessageDTO(
            receiver=receiver,
            content=content,
            attachments=attachments,
            client_msg_id=client_msg_id,
        ),
        uow,
        identity,
    )
    return MessageResponse.model_validate(msg, from_attributes=True)


@router.get("/{counterpart_kind}/{counterpart_id}", response_model=list[MessageResponse])
async def get_history(
    counterpart_kind: ActorKind,
    counterpart_id: str,
    principal: CurrentPrincipal,
    uow: UoWDep,
    identity: IdentityDep,
    before: int | None = Query(None),
    limit: int = Query(settings.HISTORY_DEFAULT_LIMIT, ge=1, le=settings.HISTORY_MAX_LIMIT),
) -> list[MessageResponse]:
    counterpart = parse_actor(counterpart_id, counterpart_kind)
    messages = await message_service.get_history_with(
        principal, counterpart, before, limit, uow, identity,
    )
    profiles = await profile_service.resolve_profiles([principal.actor, counterpart], identity)
    return [MessageResponse.from_message(m, profiles) for m in messages]
