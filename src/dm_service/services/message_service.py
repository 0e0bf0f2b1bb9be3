from __future__ import annotations

import uuid
from collections.abc import AsyncIterator, Sequence

from dm_service.application.dto.message import SendMessageDTO
from dm_service.application.dto.principal import Principal
from dm_service.application.exceptions import ConflictError, ValidationError
from dm_service.application.policies.permissions import assert_known_counterpart
from dm_service.application.ports.clock import Clock, SystemClock, next_created_at
from dm_service.application.ports.identity import IdentityResolver
from dm_service.application.uow import UnitOfWork
from dm_service.domain.entities.message import Attachment, Message, NewMessage
from dm_service.domain.events.message_created import EVENT_TYPE, MessageCreated
from dm_service.domain.value_objects.actor import ActorRef
from dm_service.domain.value_objects.conversation_key import conversation_key
from dm_service.domain.value_objects.enums import AttachmentKind
from dm_service.services import conversation_service

_system_clock = SystemClock()

# Stored URLs differ on every upload, so a retried send is matched on what
# the sender chose: the file kinds and names, in order.
AttachmentSignature = tuple[tuple[AttachmentKind, str], ...]


def attachment_signature(attachments: Sequence[Attachment]) -> AttachmentSignature:
    return tuple((a.kind, a.original_name) for a in attachments)


def _check_replay(msg: Message, content: str, signature: AttachmentSignature) -> Message:
    if msg.content != content or attachment_signature(msg.attachments) != signature:
        raise ConflictError("client_msg_id already used for a different message")
    return msg


async def find_replay(
    sender: ActorRef,
    receiver: ActorRef,
    client_msg_id: uuid.UUID,
    content: str,
    signature: AttachmentSignature,
    uow: UnitOfWork,
) -> Message | None:
    """Return the message already stored for a retried send, if any.

    Lets the transport answer a retry before it stores the uploads again.
    """
    existing = await uow.messages_w.get_by_client_msg_id(
        conversation_key(sender, receiver), sender.kind, sender.id, client_msg_id,
    )
    if existing is None:
        return None
    return _check_replay(existing, content.strip(), signature)


async def send_message(
    principal: Principal,
    dto: SendMessageDTO,
    uow: UnitOfWork,
    identity: IdentityResolver,
    *,
    clock: Clock = _system_clock,
) -> tuple[Message, bool]:
    """Append a message to the conversation between the caller and ``dto.receiver``.

    Returns (message, created). Replaying a client_msg_id returns the stored
    message with created=False; reusing it for a different payload is a
    ConflictError.
    """
    content = (dto.content or "").strip()
    attachments = tuple(dto.attachments)
    if not content and not attachments:
        raise ValidationError("Message must contain text or at least one attachment")

    sender = principal.actor
    receiver = await assert_known_counterpart(sender, dto.receiver, identity)
    key = conversation_key(sender, receiver)
    client_msg_id = dto.client_msg_id or uuid.uuid4()
    signature = attachment_signature(attachments)

    if dto.client_msg_id is not None:
        existing = await find_replay(sender, receiver, client_msg_id, content, signature, uow)
        if existing is not None:
            return existing, False

    await uow.messages_w.lock_conversation(key)
    last = await uow.messages_w.last_created_at(key)

    draft = NewMessage(
        conversation_key=key,
        sender_id=sender.id,
        sender_kind=sender.kind,
        receiver_id=receiver.id,
        receiver_kind=receiver.kind,
        content=content,
        attachments=attachments,
        client_msg_id=client_msg_id,
        created_at=next_created_at(clock.now(), last),
    )
    msg, created = await uow.messages_w.create_if_not_exists(draft)

    if not created:
        await uow.rollback()
        return _check_replay(msg, content, signature), False

    await conversation_service.index_message(msg, uow)
    await uow.outbox.add(
        EVENT_TYPE,
        MessageCreated(msg).to_payload(),
        aggregate_key=msg.conversation_key,
    )
    await uow.commit()
    return msg, True


async def list_history(
    key: str,
    before: int | None,
    limit: int,
    uow: UnitOfWork,
) -> list[Message]:
    """One page of ``key``'s log older than message ``before``, oldest first."""
    if limit < 1:
        raise ValidationError("limit must be positive")

    cursor: Message | None = None
    if before is not None:
        cursor = await uow.messages.get_by_id(before)
        if cursor is None or cursor.conversation_key != key:
            raise ValidationError(f"Message {before} is not part of this conversation")

    return await uow.messages.list_before(key, before=cursor, limit=limit)


async def iter_history(
    key: str,
    uow: UnitOfWork,
    *,
    page_size: int = 50,
) -> AsyncIterator[list[Message]]:
    """Yield pages from newest to oldest until the log is exhausted.

    Each call starts again from the newest message.
    """
    before: int | None = None
    while True:
        page = await list_history(key, before, page_size, uow)
        if not page:
            return
        yield page
        before = page[0].id


async def get_history_with(
    principal: Principal,
    counterpart: ActorRef,
    before: int | None,
    limit: int,
    uow: UnitOfWork,
    identity: IdentityResolver,
) -> list[Message]:
    await assert_known_counterpart(principal.actor, counterpart, identity)
    key = conversation_key(principal.actor, counterpart)
    return await list_history(key, before, limit, uow)
