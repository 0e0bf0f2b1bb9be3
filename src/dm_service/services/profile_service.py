from __future__ import annotations

import asyncio
from collections.abc import Iterable

from dm_service.application.ports.identity import IdentityResolver
from dm_service.domain.value_objects.actor import ActorProfile, ActorRef


async def resolve_profiles(
    actors: Iterable[ActorRef],
    identity: IdentityResolver,
) -> dict[ActorRef, ActorProfile]:
    """One lookup per distinct actor, run concurrently.

    Actors the identity service no longer knows get a profile with no details,
    so their messages still render.
    """
    unique = list(dict.fromkeys(actors))
    found = await asyncio.gather(*(identity.resolve(a) for a in unique))
    return {a: p or ActorProfile(a) for a, p in zip(unique, found)}
