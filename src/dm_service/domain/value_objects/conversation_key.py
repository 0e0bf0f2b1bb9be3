"""Canonical identifier for the conversation between two actors.

The key sorts both ``(id, kind)`` pairs so that either side computes the
same value and the pair shares a single history.
"""
from __future__ import annotations

from dm_service.domain.value_objects.actor import ActorRef

_SEPARATOR = "|"


def conversation_key(a: ActorRef, b: ActorRef) -> str:
    first, second = sorted(((a.id, a.kind.value), (b.id, b.kind.value)))
    return f"{first[1]}:{first[0]}{_SEPARATOR}{second[1]}:{second[0]}"
