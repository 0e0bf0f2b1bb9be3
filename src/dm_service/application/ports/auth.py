from __future__ import annotations

from typing import Protocol

from dm_service.application.dto.principal import Principal


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> Principal:
        """Return the caller behind ``token``; raise on any invalid token."""
        ...
