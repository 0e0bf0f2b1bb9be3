"""Attachment storage on the local filesystem, served under ``/uploads``."""
from __future__ import annotations

import asyncio
import secrets
import time
from pathlib import Path

from dm_service.domain.value_objects.enums import AttachmentKind

_FOLDERS = {
    AttachmentKind.IMAGE: "images",
    AttachmentKind.VIDEO: "videos",
    AttachmentKind.FILE: "files",
}


class LocalFileStorage:
    """Implements application.ports.storage.FileStorage."""

    def __init__(self, root: str | Path, url_prefix: str = "/uploads") -> None:
        self._root = Path(root)
        self._url_prefix = url_prefix.rstrip("/")

    async def save(
        self,
        kind: AttachmentKind,
        original_name: str,
        data: bytes,
    ) -> str:
        folder = _FOLDERS[kind]
        name = f"{int(time.time() * 1000)}-{secrets.token_hex(6)}{Path(original_name).suffix.lower()}"
        target = self._root / folder / name
        await asyncio.to_thread(self._write, target, data)
        return f"{self._url_prefix}/{folder}/{name}"

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
