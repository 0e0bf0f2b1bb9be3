"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta, timezone
from typing import Any, Sequence
from uuid import UUID

import pytest

from dm_service.application.dto.message import UploadedFileDTO
from dm_service.application.dto.principal import Principal
from dm_service.application.repositories.conversation_index import IndexEntry
from dm_service.application.repositories.outbox import OutboxRecord
from dm_service.domain.entities.conversation import ConversationSummary
from dm_service.domain.entities.message import Attachment, Message, NewMessage
from dm_service.domain.value_objects.actor import ActorProfile, ActorRef
from dm_service.domain.value_objects.conversation_key import conversation_key
from dm_service.domain.value_objects.enums import ActorKind, AttachmentKind

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

ALICE = ActorRef("64a000000000000000000001", ActorKind.USER)
BOB = ActorRef("64a000000000000000000002", ActorKind.USER)
ACME = ActorRef("64a000000000000000000003", ActorKind.COMPANY)


@pytest.fixture
def alice() -> Principal:
    return Principal(actor=ALICE)


@pytest.fixture
def bob() -> Principal:
    return Principal(actor=BOB)


def make_message(
    *,
    id: int = 1,
    sender: ActorRef = ALICE,
    receiver: ActorRef = BOB,
    content: str = "hello",
    attachments: tuple[Attachment, ...] = (),
    created_at: datetime | None = None,
) -> Message:
    return Message(
        id=id,
        conversation_key=conversation_key(sender, receiver),
        sender_id=sender.id,
        sender_kind=sender.kind,
        receiver_id=receiver.id,
        receiver_kind=receiver.kind,
        content=content,
        attachments=attachments,
        client_msg_id=uuid.uuid4(),
        created_at=created_at or T0 + timedelta(seconds=id),
    )


def image(name: str = "photo.png") -> Attachment:
    return Attachment(kind=AttachmentKind.IMAGE, url=f"/uploads/images/{name}", original_name=name)


def upload(name: str = "photo.png", content_type: str = "image/png", size: int = 16) -> UploadedFileDTO:
    return UploadedFileDTO(filename=name, content_type=content_type, data=b"x" * size)


class FrozenClock:
    """Clock that never advances unless told to."""

    def __init__(self, now: datetime = T0) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current


class TickingClock(FrozenClock):
    """Advances one second per reading."""

    def now(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@dataclass
class FakeIdentity:
    unknown: set[ActorRef] = field(default_factory=set)
    names: dict[ActorRef, str] = field(default_factory=dict)
    lookups: list[ActorRef] = field(default_factory=list)

    async def exists(self, actor: ActorRef) -> bool:
        return actor not in self.unknown

    async def resolve(self, actor: ActorRef) -> ActorProfile | None:
        self.lookups.append(actor)
        if actor in self.unknown:
            return None
        name = self.names.get(actor)
        return ActorProfile(actor, name, f"/avatars/{actor.id}.png" if name else None)


@dataclass
class FakeStorage:
    saved: list[tuple[AttachmentKind, str, int]] = field(default_factory=list)

    async def save(self, kind: AttachmentKind, original_name: str, data: bytes) -> str:
        self.saved.append((kind, original_name, len(data)))
        return f"/uploads/{kind.value}s/{len(self.saved)}-{original_name}"


@dataclass
class InMemoryStore:
    """State shared by every FakeUoW of one test, like a database."""

    messages: list[Message] = field(default_factory=list)
    index: dict[tuple[ActorRef, ActorRef], IndexEntry] = field(default_factory=dict)
    outbox: list[dict[str, Any]] = field(default_factory=list)
    locks: dict[str, asyncio.Lock] = field(default_factory=dict)
    next_id: int = 1


@dataclass
class FakeMessageReader:
    _store: InMemoryStore

    async def get_by_id(self, message_id: int) -> Message | None:
        return next((m for m in self._store.messages if m.id == message_id), None)

    async def get_many(self, message_ids: list[int]) -> list[Message]:
        wanted = set(message_ids)
        return [m for m in self._store.messages if m.id in wanted]

    async def list_before(
        self,
        conversation_key: str,
        *,
        before: Message | None = None,
        limit: int = 50,
    ) -> list[Message]:
        rows = sorted(
            (m for m in self._store.messages if m.conversation_key == conversation_key),
            key=lambda m: m.order_key,
        )
        if before is not None:
            rows = [m for m in rows if m.order_key < before.order_key]
        return rows[-limit:]


@dataclass
class FakeMessageWriter:
    _store: InMemoryStore
    _held: list[asyncio.Lock] = field(default_factory=list)

    async def lock_conversation(self, conversation_key: str) -> None:
        lock = self._store.locks.setdefault(conversation_key, asyncio.Lock())
        await lock.acquire()
        self._held.append(lock)

    def release_locks(self) -> None:
        while self._held:
            self._held.pop().release()

    async def last_created_at(self, conversation_key: str) -> datetime | None:
        await asyncio.sleep(0)
        stamps = [m.created_at for m in self._store.messages if m.conversation_key == conversation_key]
        return max(stamps, default=None)

    async def create_if_not_exists(self, message: NewMessage) -> tuple[Message, bool]:
        await asyncio.sleep(0)
        existing = await self.get_by_client_msg_id(
            message.conversation_key, message.sender_kind, message.sender_id, message.client_msg_id,
        )
        if existing is not None:
            return existing, False
        stored = Message(
            id=self._store.next_id,
            **{f.name: getattr(message, f.name) for f in fields(NewMessage)},
        )
        self._store.next_id += 1
        self._store.messages.append(stored)
        return stored, True

    async def get_by_client_msg_id(
        self,
        conversation_key: str,
        sender_kind: ActorKind,
        sender_id: str,
        client_msg_id: UUID,
    ) -> Message | None:
        for m in self._store.messages:
            if (
                m.conversation_key == conversation_key
                and m.sender_kind == sender_kind
                and m.sender_id == sender_id
                and m.client_msg_id == client_msg_id
            ):
                return m
        return None


@dataclass
class FakeIndexReader:
    _store: InMemoryStore

    async def list_for_actor(self, actor: ActorRef) -> list[IndexEntry]:
        return [e for (owner, _), e in self._store.index.items() if owner == actor]


@dataclass
class FakeIndexWriter:
    _store: InMemoryStore

    async def upsert(self, entry: IndexEntry) -> None:
        self._store.index[(entry.actor, entry.counterpart)] = entry


@dataclass
class FakeOutboxWriter:
    _store: InMemoryStore
    _failed: list[tuple[int, datetime]] = field(default_factory=list)
    _sent: list[int] = field(default_factory=list)
    _dead: list[int] = field(default_factory=list)
    stale: int = 0

    @property
    def _records(self) -> list[dict[str, Any]]:
        return self._store.outbox

    async def add(
        self,
        event_type: str,
        payload: dict[str, Any],
        *,
        aggregate_key: str | None = None,
    ) -> None:
        self._store.outbox.append(
            {
                "id": len(self._store.outbox) + 1,
                "event_type": event_type,
                "payload": payload,
                "aggregate_key": aggregate_key,
                "attempts": 0,
            }
        )

    async def claim_batch(self, batch_size: int, max_attempts: int) -> list[OutboxRecord]:
        done = set(self._sent) | set(self._dead)
        return [
            OutboxRecord(
                id=r["id"],
                event_type=r["event_type"],
                payload=r["payload"],
                attempts=r["attempts"],
                aggregate_key=r["aggregate_key"],
            )
            for r in self._store.outbox
            if r["id"] not in done and r["attempts"] < max_attempts
        ][:batch_size]

    async def mark_sent(self, ids: list[int]) -> None:
        self._sent.extend(ids)

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None:
        self._failed.append((record_id, next_retry_at))
        self._store.outbox[record_id - 1]["attempts"] += 1

    async def mark_dead(self, record_id: int) -> None:
        self._dead.append(record_id)

    async def release_stale(self, older_than: timedelta) -> int:
        released, self.stale = self.stale, 0
        return released


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    store: InMemoryStore = field(default_factory=InMemoryStore)
    messages: FakeMessageReader | None = None
    messages_w: FakeMessageWriter | None = None
    conversation_index: FakeIndexReader | None = None
    conversation_index_w: FakeIndexWriter | None = None
    outbox: FakeOutboxWriter | None = None
    _committed: bool = False
    _rolled_back: bool = False

    def __post_init__(self) -> None:
        self.messages = FakeMessageReader(self.store)
        self.messages_w = FakeMessageWriter(self.store)
        self.conversation_index = FakeIndexReader(self.store)
        self.conversation_index_w = FakeIndexWriter(self.store)
        self.outbox = FakeOutboxWriter(self.store)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True
        self.messages_w.release_locks()

    async def rollback(self) -> None:
        self._rolled_back = True
        self.messages_w.release_locks()


@dataclass
class FakeApi:
    """Scriptable MessagingApi for client session tests."""

    me: ActorRef = ALICE
    histories: dict[ActorRef, list[Message]] = field(default_factory=dict)
    gates: dict[ActorRef, asyncio.Event] = field(default_factory=dict)
    send_errors: list[Exception] = field(default_factory=list)
    history_errors: list[Exception] = field(default_factory=list)
    sent: list[dict[str, Any]] = field(default_factory=list)
    summaries: list[ConversationSummary] = field(default_factory=list)
    send_gate: asyncio.Event | None = None

    async def send_message(
        self,
        receiver: ActorRef,
        content: str,
        files: Sequence[UploadedFileDTO],
        client_msg_id: UUID,
    ) -> Message:
        self.sent.append(
            {"receiver": receiver, "content": content, "files": list(files), "client_msg_id": client_msg_id}
        )
        if self.send_gate is not None:
            await self.send_gate.wait()
        if self.send_errors:
            raise self.send_errors.pop(0)
        log = self.histories.setdefault(receiver, [])
        msg = make_message(
            id=1000 + len(self.sent),
            sender=self.me,
            receiver=receiver,
            content=content,
            attachments=tuple(image(f.filename) for f in files),
        )
        log.append(msg)
        return msg

    async def history(
        self,
        counterpart: ActorRef,
        *,
        before: int | None = None,
        limit: int = 50,
    ) -> list[Message]:
        gate = self.gates.get(counterpart)
        if gate is not None:
            await gate.wait()
        if self.history_errors:
            raise self.history_errors.pop(0)
        log = sorted(self.histories.get(counterpart, []), key=lambda m: m.order_key)
        if before is not None:
            log = [m for m in log if m.id < before]
        return log[-limit:]

    async def list_conversations(self) -> list[ConversationSummary]:
        return list(self.summaries)


async def no_sleep(_delay: float) -> None:
    return None
