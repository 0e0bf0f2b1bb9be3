"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

import httpx
import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from dm_service.application.dto.principal import Principal
from dm_service.application.exceptions import ValidationError
from dm_service.application.ports.auth import TokenVerifier
from dm_service.application.ports.identity import IdentityResolver
from dm_service.application.ports.storage import FileStorage
from dm_service.config import settings
from dm_service.domain.value_objects.actor import ActorRef
from dm_service.infrastructure.auth.jwt_verifiers import HS256Verifier, JWKSVerifier
from dm_service.infrastructure.db.uow import SqlAlchemyUoW
from dm_service.infrastructure.identity.resolvers import (
    HttpIdentityResolver,
    TrustingIdentityResolver,
)
from dm_service.infrastructure.storage.local import LocalFileStorage

_bearer_scheme = HTTPBearer()


async def get_uow() -> AsyncIterator[SqlAlchemyUoW]:
    async with SqlAlchemyUoW.begin() as uow:
        yield uow


UoWDep = Annotated[SqlAlchemyUoW, Depends(get_uow)]


def _get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(
            settings.JWKS_URL,
            algorithms=settings.JWKS_ALGORITHMS,
            audience=settings.JWT_AUDIENCE,
            leeway=settings.JWT_LEEWAY_SECONDS,
        )
    return HS256Verifier(
        settings.JWT_SECRET,
        settings.JWT_ALGORITHM,
        audience=settings.JWT_AUDIENCE,
        leeway=settings.JWT_LEEWAY_SECONDS,
    )


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _get_verifier()
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
) -> Principal:
    try:
        return await get_verifier().verify(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


_identity_client: httpx.AsyncClient | None = None
_identity: IdentityResolver | None = None


def get_identity_resolver() -> IdentityResolver:
    global _identity, _identity_client  # noqa: PLW0603
    if _identity is None:
        if settings.IDENTITY_SERVICE_URL:
            _identity_client = httpx.AsyncClient(
                base_url=settings.IDENTITY_SERVICE_URL,
                timeout=settings.IDENTITY_TIMEOUT_SECONDS,
            )
            _identity = HttpIdentityResolver(_identity_client)
        else:
            _identity = TrustingIdentityResolver()
    return _identity


async def close_identity_resolver() -> None:
    global _identity, _identity_client  # noqa: PLW0603
    if _identity_client is not None:
        await _identity_client.aclose()
    _identity_client = None
    _identity = None


IdentityDep = Annotated[IdentityResolver, Depends(get_identity_resolver)]


def get_file_storage() -> FileStorage:
    return LocalFileStorage(settings.UPLOAD_DIR, settings.UPLOAD_URL_PREFIX)


StorageDep = Annotated[FileStorage, Depends(get_file_storage)]


def parse_actor(actor_id: str, kind: str) -> ActorRef:
    try:
        return ActorRef.parse(actor_id, kind)
    except ValueError as exc:
        raise ValidationError(f"Malformed actor reference: {exc}") from exc
