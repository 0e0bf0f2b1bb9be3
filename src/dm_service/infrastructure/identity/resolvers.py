"""Identity service adapters: existence checks and display profiles."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from dm_service.application.exceptions import DependencyError, TransientIOError
from dm_service.domain.value_objects.actor import ActorProfile, ActorRef
from dm_service.domain.value_objects.enums import ActorKind

logger = logging.getLogger(__name__)

_PATHS = {
    ActorKind.USER: "users",
    ActorKind.COMPANY: "companies",
}


def profile_from_document(actor: ActorRef, doc: dict[str, Any]) -> ActorProfile:
    """Companies carry ``name``/``logo``; users ``firstName``/``lastName``/``image``."""
    name = doc.get("name") or " ".join(
        part for part in (doc.get("firstName"), doc.get("lastName")) if part
    )
    return ActorProfile(
        actor=actor,
        display_name=name or None,
        avatar_url=doc.get("logo") or doc.get("image") or None,
    )


class HttpIdentityResolver:
    """Implements application.ports.identity.IdentityResolver over REST."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def _fetch(self, actor: ActorRef) -> httpx.Response | None:
        path = f"/{_PATHS[actor.kind]}/{actor.id}"
        try:
            resp = await self._client.get(path)
        except httpx.TransportError as exc:
            logger.warning("Identity lookup failed for %s: %s", actor.key, exc)
            raise TransientIOError("Identity service unavailable") from exc

        if resp.status_code == 404:
            return None
        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientIOError(f"Identity service returned {resp.status_code}")
        if resp.is_error:
            logger.error("Identity service rejected lookup of %s: %d", actor.key, resp.status_code)
            raise DependencyError(f"Identity service rejected the lookup ({resp.status_code})")
        return resp

    async def exists(self, actor: ActorRef) -> bool:
        return await self._fetch(actor) is not None

    async def resolve(self, actor: ActorRef) -> ActorProfile | None:
        resp = await self._fetch(actor)
        if resp is None:
            return None
        try:
            doc = resp.json()
        except ValueError:
            logger.warning("Identity service sent a non-JSON profile for %s", actor.key)
            return ActorProfile(actor)
        return profile_from_document(actor, doc if isinstance(doc, dict) else {})


class TrustingIdentityResolver:
    """Accepts every well-formed reference; used when no identity service is configured."""

    async def exists(self, actor: ActorRef) -> bool:
        return True

    async def resolve(self, actor: ActorRef) -> ActorProfile | None:
        return ActorProfile(actor)
