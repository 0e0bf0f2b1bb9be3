from __future__ import annotations

from dataclasses import dataclass

from dm_service.domain.value_objects.enums import ActorKind


@dataclass(frozen=True, slots=True)
class ActorRef:
    """Reference to a User or Company owned by the identity service."""

    id: str
    kind: ActorKind

    @property
    def key(self) -> str:
        """Registry key for live connections and index rows."""
        return f"{self.kind}:{self.id}"

    @classmethod
    def parse(cls, id: str, kind: str) -> ActorRef:
        """Build a reference from raw wire values, raising ValueError if malformed."""
        actor_id = (id or "").strip()
        if not actor_id:
            raise ValueError("actor id must not be empty")
        if "|" in actor_id:
            raise ValueError("actor id must not contain '|'")
        return cls(id=actor_id, kind=ActorKind(kind))


@dataclass(frozen=True, slots=True)
class ActorProfile:
    """Display details for an actor; missing fields are None."""

    actor: ActorRef
    display_name: str | None = None
    avatar_url: str | None = None
