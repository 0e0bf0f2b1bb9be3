from __future__ import annotations

import pytest

from dm_service.client.inbox import Inbox
from dm_service.domain.entities.conversation import ConversationSummary
from tests.conftest import ACME, ALICE, BOB, FakeApi, make_message


def test_apply_keeps_latest_per_counterpart():
    inbox = Inbox(ALICE)
    old = make_message(id=1, sender=BOB, receiver=ALICE)
    new = make_message(id=2, sender=ALICE, receiver=BOB)
    other = make_message(id=3, sender=ACME, receiver=ALICE)

    inbox.apply(new)
    inbox.apply(old)
    inbox.apply(other)

    assert [(s.other, s.last_message.id) for s in inbox.conversations()] == [(ACME, 3), (BOB, 2)]


def test_unread_markers():
    inbox = Inbox(ALICE)
    inbox.apply(make_message(id=1, sender=BOB, receiver=ALICE), unread=True)

    assert inbox.is_unread(BOB)
    inbox.mark_seen(BOB)
    assert not inbox.is_unread(BOB)


@pytest.mark.asyncio
async def test_refresh_replaces_entries_and_drops_stale_unread():
    inbox = Inbox(ALICE)
    inbox.apply(make_message(id=1, sender=ACME, receiver=ALICE), unread=True)
    msg = make_message(id=5, sender=BOB, receiver=ALICE)
    api = FakeApi(summaries=[ConversationSummary(key=msg.conversation_key, other=BOB, last_message=msg)])

    result = await inbox.refresh(api)

    assert [s.other for s in result] == [BOB]
    assert not inbox.is_unread(ACME)

    inbox.invalidate()
    assert inbox.conversations() == []
