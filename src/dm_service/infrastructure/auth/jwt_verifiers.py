"""Bearer-token verification for REST and WebSocket callers.

Tokens are minted by the identity service: ``sub`` is the actor id and
``kind`` (or the older ``type``) is ``User`` or ``Company``.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

import jwt
from jwt import PyJWKClient

from dm_service.application.dto.principal import Principal
from dm_service.domain.value_objects.actor import ActorRef
from dm_service.domain.value_objects.enums import ActorKind

logger = logging.getLogger(__name__)


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    """Map verified claims to a Principal; an absent or unknown kind means User."""
    kind_raw = payload.get("kind", payload.get("type"))
    try:
        kind = ActorKind(kind_raw)
    except ValueError:
        kind = ActorKind.USER
    try:
        actor = ActorRef.parse(str(payload["sub"]), kind)
    except ValueError as exc:
        raise jwt.InvalidTokenError(f"Unusable subject: {exc}") from exc
    return Principal(actor=actor)


class _ClaimsVerifier:
    def __init__(self, *, audience: str | None, leeway: int) -> None:
        self._audience = audience
        self._leeway = leeway

    def _decode(self, token: str, key: Any, algorithms: Sequence[str]) -> Principal:
        payload = jwt.decode(
            token,
            key,
            algorithms=list(algorithms),
            audience=self._audience,
            leeway=self._leeway,
            options={"require": ["sub"]},
        )
        return principal_from_claims(payload)


class HS256Verifier(_ClaimsVerifier):
    """Shared-secret tokens."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        *,
        audience: str | None = None,
        leeway: int = 0,
    ) -> None:
        super().__init__(audience=audience, leeway=leeway)
        self._secret = secret
        self._algorithm = algorithm

    async def verify(self, token: str) -> Principal:
        return self._decode(token, self._secret, [self._algorithm])


class JWKSVerifier(_ClaimsVerifier):
    """Asymmetric tokens checked against the identity service's JWKS endpoint."""

    def __init__(
        self,
        jwks_url: str,
        *,
        algorithms: Sequence[str] = ("RS256", "ES256"),
        audience: str | None = None,
        leeway: int = 0,
    ) -> None:
        super().__init__(audience=audience, leeway=leeway)
        self._jwk_client = PyJWKClient(jwks_url, cache_keys=True)
        self._algorithms = tuple(algorithms)

    async def verify(self, token: str) -> Principal:
        # PyJWKClient fetches keys with blocking I/O
        signing_key = await asyncio.to_thread(self._jwk_client.get_signing_key_from_jwt, token)
        principal = self._decode(token, signing_key.key, self._algorithms)
        logger.debug("Verified JWKS token for %s", principal.principal_key)
        return principal
