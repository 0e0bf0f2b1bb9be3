from __future__ import annotations

from typing import Protocol

from dm_service.domain.value_objects.actor import ActorProfile, ActorRef


class IdentityResolver(Protocol):
    async def exists(self, actor: ActorRef) -> bool:
        """Return True if the identity service knows ``actor``."""
        ...

    async def resolve(self, actor: ActorRef) -> ActorProfile | None:
        """Display name and avatar for ``actor``; None if unknown."""
        ...
