from __future__ import annotations

from typing import Protocol

from dm_service.domain.value_objects.enums import AttachmentKind


class FileStorage(Protocol):
    async def save(
        self,
        kind: AttachmentKind,
        original_name: str,
        data: bytes,
    ) -> str:
        """Persist ``data`` and return a retrievable URL."""
        ...
