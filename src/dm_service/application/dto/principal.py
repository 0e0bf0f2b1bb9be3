from __future__ import annotations

from dataclasses import dataclass

from dm_service.domain.value_objects.actor import ActorRef


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from JWT."""

    actor: ActorRef

    @property
    def principal_key(self) -> str:
        """Unique key for WS connection registry."""
        return self.actor.key
